"""
LLMock URL Utilities

Shared path and query-string helpers used by the request mutator and the
transports.
"""

from urllib.parse import quote, parse_qsl
from typing import Dict, Iterable, List, Optional, Tuple


class URLMatcher:
    """Handles path comparison and query-string assembly."""

    @staticmethod
    def encode_component(value: str) -> str:
        """
        Percent-encode a query key or value.

        Only RFC 3986 unreserved characters (letters, digits, ``-_.~``) are
        left as-is, so ``/``, ``&``, ``=`` and spaces are always escaped.

        Args:
            value: Raw string

        Returns:
            Encoded string
        """
        return quote(str(value), safe='')

    @staticmethod
    def build_query(pairs: Iterable[Tuple[str, str]]) -> str:
        """
        Build a query-string fragment from ordered key/value pairs.

        Args:
            pairs: Ordered (key, value) pairs, already stringified

        Returns:
            Fragment such as ``shape=%7B%7D&cache=3`` (empty if no pairs)
        """
        return '&'.join(
            f"{URLMatcher.encode_component(key)}={URLMatcher.encode_component(value)}"
            for key, value in pairs
        )

    @staticmethod
    def append_query(existing: str, fragment: str) -> str:
        """
        Append a fragment to an existing query string.

        Pre-existing parameters are kept verbatim and come first.

        Args:
            existing: Current query string, with or without leading ``?``
            fragment: Fragment to append

        Returns:
            Combined query string without leading ``?``
        """
        existing = (existing or '').lstrip('?')
        if not fragment:
            return existing
        if not existing:
            return fragment
        return f"{existing}&{fragment}"

    @staticmethod
    def join_path(base: Optional[str], path: str) -> str:
        """Prefix ``path`` with ``base`` (trailing slash on base ignored)."""
        if not base:
            return path
        base = base.rstrip('/')
        if not path.startswith('/'):
            path = '/' + path
        return f"{base}{path}"

    @staticmethod
    def parse_query(query: str) -> Dict[str, List[str]]:
        """
        Parse a query string into a dict of value lists, keeping blank values.

        Args:
            query: Raw query string

        Returns:
            Mapping of key to list of values, in first-seen order
        """
        parsed: Dict[str, List[str]] = {}
        for key, value in parse_qsl(query or '', keep_blank_values=True):
            parsed.setdefault(key, []).append(value)
        return parsed
