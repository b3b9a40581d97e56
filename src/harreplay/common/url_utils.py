"""
HAR Replay URL Utilities

URL normalization shared by the archive-side and request-side key policies.
"""

from urllib.parse import urlparse, parse_qsl, urlencode
from typing import Optional


class URLMatcher:
    """Normalizes URLs so archived and live requests produce comparable keys."""

    @staticmethod
    def normalize_query(query: str) -> str:
        """
        Sort query parameters for consistent comparison.

        Args:
            query: Raw query string (without leading '?')

        Returns:
            Re-encoded query string with parameters sorted by name, then value
        """
        if not query:
            return ''
        pairs = parse_qsl(query, keep_blank_values=True)
        return urlencode(sorted(pairs))

    @staticmethod
    def path_and_query(url: str, strip_query: bool = False) -> str:
        """
        Reduce a URL to its path plus normalized query.

        Scheme, host and fragment are dropped so that a request recorded
        against https://api.example.com/users?b=2&a=1 and a live request to
        http://127.0.0.1:8080/users?a=1&b=2 reduce to the same string.

        Args:
            url: Absolute URL or path
            strip_query: If True, remove query parameters

        Returns:
            Path with optional '?'-prefixed sorted query
        """
        parsed = urlparse(url)
        path = parsed.path or '/'

        if strip_query:
            return path

        query = URLMatcher.normalize_query(parsed.query)
        return f"{path}?{query}" if query else path

    @staticmethod
    def hostname(url: str) -> Optional[str]:
        """Extract the lowercased hostname of a URL, if any."""
        host = urlparse(url).hostname
        return host.lower() if host else None

