"""
Text helpers shared by the tag parser and the aggregators.
"""

from __future__ import annotations


class TextProcessor:
    """Utility class for query and tag text operations."""

    @staticmethod
    def normalize_query(query: str | None) -> str | None:
        """
        Return the lowercased query, or None when it is absent or blank.

        A None result means "no filtering".
        """
        if query is None or not query.strip():
            return None
        return query.lower()

    @staticmethod
    def contains(text: str | None, query_lower: str) -> bool:
        """Case-insensitive substring test; ``query_lower`` must already be lowercased."""
        if text is None:
            return False
        return query_lower in text.lower()

    @staticmethod
    def has_untrimmed_edges(text: str) -> bool:
        return text != text.strip()

    @staticmethod
    def has_reserved_chars(text: str, reserved: str = ":{}") -> bool:
        """Check whether text contains any of the tag syntax characters."""
        return any(ch in text for ch in reserved)
