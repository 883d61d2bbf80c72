"""
Tag format validation.

Checks that a parsed tag conforms to the strict ``分类:内容{补充}`` rules:
names and details must be trimmed, must not contain the syntax characters
``:``, ``{`` or ``}``, and details are limited in length.
"""

from __future__ import annotations

from threading import RLock

from ..models import ValidationStatus
from ..utils.text_utils import TextProcessor

MAX_DETAIL_LENGTH = 100

CacheKey = tuple[str, str]


class ValidationCache:
    """
    Thread-safe, append-only memo of validation results.

    Keys are ``(tag_name, tag_detail or "")``. Entries are never evicted;
    validation is a pure function of its inputs so they never go stale.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: dict[CacheKey, ValidationStatus] = {}

    @staticmethod
    def make_key(tag_name: str, tag_detail: str | None) -> CacheKey:
        return tag_name, tag_detail or ""

    def get(self, key: CacheKey) -> ValidationStatus | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, status: ValidationStatus) -> ValidationStatus:
        """Store a status; an existing entry wins and is returned."""
        with self._lock:
            return self._entries.setdefault(key, status)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


_default_cache: ValidationCache | None = None
_default_cache_lock = RLock()


def default_validation_cache() -> ValidationCache:
    """Process-wide cache, created on first use."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = ValidationCache()
        return _default_cache


def _has_error(tag_name: str, tag_detail: str | None) -> bool:
    if not tag_name.strip():
        return True
    if TextProcessor.has_reserved_chars(tag_name):
        return True
    if TextProcessor.has_untrimmed_edges(tag_name):
        return True

    if tag_detail is not None:
        if TextProcessor.has_reserved_chars(tag_detail):
            return True
        if TextProcessor.has_untrimmed_edges(tag_detail):
            return True
        if len(tag_detail) > MAX_DETAIL_LENGTH:
            return True

    return False


def validate_tag_format(
    tag_name: str,
    tag_detail: str | None = None,
    cache: ValidationCache | None = None,
) -> ValidationStatus:
    """
    Classify a tag as VALID or ERROR.

    Results are memoized in ``cache`` (the process-wide cache by default);
    a cache hit skips all checks. WARNING and SPECIAL are never produced here.
    """
    cache = cache if cache is not None else default_validation_cache()
    key = ValidationCache.make_key(tag_name, tag_detail)

    cached = cache.get(key)
    if cached is not None:
        return cached

    status = ValidationStatus.ERROR if _has_error(tag_name, tag_detail) else ValidationStatus.VALID
    return cache.put(key, status)
