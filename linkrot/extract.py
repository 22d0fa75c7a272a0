from __future__ import annotations

import re
from typing import Iterator, List, Union

# Inline markdown links [text](url) pointing at http(s).
# URLs containing parentheses are not matched: "[a](https://x/a_(b))" is skipped
# entirely since the closing ")" must directly follow a paren-free URL.
MARKDOWN_LINK_RE = re.compile(r"\[[^\[\]]+\]\((https?://[^()]+)\)")


def iter_links(text: Union[str, bytes]) -> Iterator[str]:
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    for match in MARKDOWN_LINK_RE.finditer(text):
        yield match.group(1)


def extract_links(text: Union[str, bytes]) -> List[str]:
    """Return every inline http(s) link in ``text``, in order, duplicates included."""
    return list(iter_links(text))
