from linkrot.config import ProbeConfig
from linkrot.dispatch import LinkChecker, TaskGroup
from linkrot.errors import ConfigError, DiscoveryError, LinkrotError, NotMarkdownError
from linkrot.extract import extract_links
from linkrot.probe import ProbeClient, ProbeResult
from linkrot.report import Reporter
from linkrot.walk import WalkTarget, iter_markdown_files, resolve_target

__version__ = "0.1.0"
