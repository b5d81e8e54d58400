"""
Proxy tag matching.

A tag matches when its prefix (if any) starts the text, its suffix (if any)
ends it, and something is left between them. Tags are tried in stored order
and the first match wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from relaycord.datatypes.proxy_datatypes import ProxyTag


@dataclass(frozen=True, slots=True)
class TagMatch:
    tag_index: int
    content: str


def _same(a: str, b: str, case_sensitive: bool) -> bool:
    return a == b if case_sensitive else a.lower() == b.lower()


def matches(text: str, tag: ProxyTag, case_sensitive: bool = False) -> bool:
    """True if ``tag`` wraps ``text`` with non-empty content in between."""
    if tag.is_empty:
        return False
    if len(text) - len(tag.prefix) - len(tag.suffix) <= 0:
        return False
    if tag.prefix and not _same(text[:len(tag.prefix)], tag.prefix, case_sensitive):
        return False
    if tag.suffix and not _same(text[len(text) - len(tag.suffix):], tag.suffix, case_sensitive):
        return False
    return True


def extract(text: str, tag: ProxyTag) -> str:
    """Strip the tag's envelope from ``text`` and trim surrounding whitespace."""
    return text[len(tag.prefix):len(text) - len(tag.suffix)].strip()


def match(text: str, tags: Sequence[ProxyTag], case_sensitive: bool = False) -> Optional[TagMatch]:
    """
    Return the first tag in ``tags`` that matches ``text``.

    Args:
        text: Raw message text
        tags: A member's tags in stored order
        case_sensitive: Compare prefix and suffix exactly instead of case-folded

    Returns:
        The index of the matching tag and the extracted content, or None
    """
    for index, tag in enumerate(tags):
        if matches(text, tag, case_sensitive):
            return TagMatch(index, extract(text, tag))
    return None
