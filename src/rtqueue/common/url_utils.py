"""
RTQueue URL Utilities

Shared URL parsing helpers used by the matchers and the transport registry.
"""

from urllib.parse import urlsplit, parse_qs
from typing import Dict, List


class URLParts:
    """Splits request URLs into the pieces requests are matched on."""

    @staticmethod
    def host(netloc: str) -> str:
        """
        Strip userinfo from a netloc, keeping host and port.

        Args:
            netloc: Network location, e.g. ``user:pw@example.com:8080``

        Returns:
            Host with optional port, e.g. ``example.com:8080``
        """
        return netloc.rpartition('@')[2]

    @staticmethod
    def origin(url: str) -> str:
        """
        Compute the origin (scheme + "://" + host) of a URL.

        Scheme and host are lower-cased; the port is kept as written.

        Args:
            url: Absolute URL

        Returns:
            Origin string such as ``https://api.example.com``
        """
        parsed = urlsplit(url)
        return f"{parsed.scheme.lower()}://{URLParts.host(parsed.netloc).lower()}"

    @staticmethod
    def normalize_origin(origin: str) -> str:
        """
        Normalize a configured origin so it compares equal to request origins.

        Args:
            origin: Origin as written by the caller, e.g. ``HTTP://Example.com/``

        Returns:
            Normalized origin, e.g. ``http://example.com``

        Raises:
            ValueError: If the origin has no scheme or host
        """
        parsed = urlsplit(origin.strip())
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Origin must look like 'scheme://host[:port]', got {origin!r}")
        return URLParts.origin(origin.strip())

    @staticmethod
    def path(url: str) -> str:
        """Return the literal path component of a URL."""
        return urlsplit(url).path

    @staticmethod
    def query(url: str) -> Dict[str, List[str]]:
        """
        Parse query parameters, keeping blank values.

        Args:
            url: Request URL

        Returns:
            Mapping of parameter name to all of its values
        """
        return parse_qs(urlsplit(url).query, keep_blank_values=True)

    @staticmethod
    def first_query_value(url: str, key: str) -> str:
        """
        Return the first value of a query parameter, or "" if absent.

        Args:
            url: Request URL
            key: Parameter name

        Returns:
            First value for ``key``
        """
        values = URLParts.query(url).get(key)
        return values[0] if values else ''
