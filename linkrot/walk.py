from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterator, Optional

from linkrot.errors import ConfigError, DiscoveryError, NotMarkdownError

logger = logging.getLogger(__name__)

MD_EXT = ".md"


@dataclass(frozen=True)
class WalkTarget:
    path: str
    is_dir: bool


def is_markdown(path: str) -> bool:
    return os.path.splitext(path)[1] == MD_EXT


def resolve_target(file: Optional[str] = None, directory: Optional[str] = None) -> WalkTarget:
    """Pick the single file or directory a run works on.

    Only the extension of a file target is checked here; whether it can
    actually be read is a discovery concern.
    """
    if file and directory:
        raise ConfigError("use either a file or a directory, not both")
    if file:
        if not is_markdown(file):
            raise NotMarkdownError(file)
        return WalkTarget(file, is_dir=False)
    if directory:
        return WalkTarget(directory, is_dir=True)
    raise ConfigError("missing mandatory target: use a file or a directory")


def iter_markdown_files(target: WalkTarget) -> Iterator[str]:
    """Yield markdown file paths under ``target``.

    The first error met while listing the tree ends the walk with a
    :class:`DiscoveryError`; nothing is skipped silently except non-markdown
    entries.
    """
    if not target.is_dir:
        yield target.path
        return

    if not os.path.isdir(target.path):
        raise DiscoveryError(target.path, "not a directory")

    def fail(err: OSError):
        raise DiscoveryError(err.filename or target.path, err) from err

    for dirpath, dirnames, filenames in os.walk(target.path, onerror=fail):
        dirnames.sort()
        for name in sorted(filenames):
            if is_markdown(name):
                yield os.path.join(dirpath, name)


def read_markdown(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise DiscoveryError(path, e) from e
