class LinkrotError(Exception):
    """Base class for errors that abort a run."""


class ConfigError(LinkrotError):
    pass


class NotMarkdownError(ConfigError):
    def __init__(self, path):
        super().__init__(f"not a markdown file: {path}")
        self.path = path


class DiscoveryError(LinkrotError):
    """A markdown file could not be found, listed or read."""

    def __init__(self, path, cause):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause
