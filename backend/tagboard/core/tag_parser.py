"""
Custom tag string parsing.

A stock's ``custom_tags`` field holds entries such as
``行业:互联网{核心}; 概念:AI``: segments separated by ``;``, each of the form
``分类:标签`` with an optional ``{补充信息}`` suffix.
"""

from __future__ import annotations

import re
from threading import RLock

from ..models import TagItem

SECTION_SEPARATOR = ";"
CATEGORY_SEPARATOR = ":"

# 标签{补充信息}
_DETAIL_PATTERN = re.compile(r"(.+?)\{(.+?)\}")

ParsedTagMap = dict[str, list[TagItem]]


def parse_custom_tags(tags: str) -> ParsedTagMap:
    """
    Parse a raw custom tag string into ``{category: [TagItem, ...]}``.

    Parsing is permissive: reserved characters left inside names or details
    are kept as-is and only flagged later by the validator. Segments without
    a category name are dropped. A category whose value is empty still gets
    an (empty) entry.
    """
    if not tags:
        return {}

    parsed: ParsedTagMap = {}
    sections = [part.strip() for part in tags.split(SECTION_SEPARATOR)]

    for section in sections:
        if not section:
            continue
        colon_index = section.find(CATEGORY_SEPARATOR)
        if colon_index <= 0:
            continue

        category = section[:colon_index].strip()
        value = section[colon_index + 1:].strip()
        category_tags = parsed.setdefault(category, [])

        match = _DETAIL_PATTERN.fullmatch(value)
        if match is not None:
            category_tags.append(
                TagItem(name=match.group(1).strip(), detail=match.group(2).strip())
            )
        elif value:
            category_tags.append(TagItem(name=value))

    return parsed


def copy_parsed(parsed: ParsedTagMap) -> ParsedTagMap:
    return {category: [item.model_copy() for item in items] for category, items in parsed.items()}


class ParseCache:
    """
    Memo of ``raw tag string -> parsed map``.

    Parsing is a pure function of the raw string, so cached entries never
    go stale. Lookups hand out copies; the stored maps are never exposed.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: dict[str, ParsedTagMap] = {}

    def parse(self, tags: str) -> ParsedTagMap:
        with self._lock:
            cached = self._entries.get(tags)
        if cached is None:
            cached = parse_custom_tags(tags)
            with self._lock:
                cached = self._entries.setdefault(tags, cached)
        return copy_parsed(cached)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, tags: object) -> bool:
        with self._lock:
            return tags in self._entries
