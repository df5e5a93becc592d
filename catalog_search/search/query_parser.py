"""
Query normalization.

Bounds raw user input before it reaches the record store. Purely defensive:
it never changes how results are scored.
"""

import re
from typing import Optional

from catalog_search.search.config import ParsingConfig

# Characters stripped before text matching
UNSAFE_CHARACTERS = re.compile(r"[<>&'\"\\]")


class QueryParser:
    """Trims, bounds and sanitizes raw query strings."""

    def __init__(self, config: Optional[ParsingConfig] = None):
        self.config = config or ParsingConfig()

    def parse(self, raw: Optional[str]) -> Optional[str]:
        """
        Normalize a raw query.

        Args:
            raw: Query as typed by the user

        Returns:
            The cleaned query, or None when it is shorter than the minimum
            length (before or after stripping unsafe characters).
        """
        if raw is None:
            return None

        query = raw.strip()
        if len(query) < self.config.min_query_length:
            return None

        if len(query) > self.config.max_query_length:
            query = query[:self.config.max_query_length]

        query = UNSAFE_CHARACTERS.sub("", query).strip()
        if len(query) < self.config.min_query_length:
            return None

        return query


def parse_query(raw: Optional[str], config: Optional[ParsingConfig] = None) -> Optional[str]:
    """Module-level shortcut for QueryParser(config).parse(raw)."""
    return QueryParser(config).parse(raw)
