"""Exceptions raised by the discovery pipeline."""

from __future__ import annotations

__all__ = [
    "DiscoveryError",
    "HTTPStatusError",
    "InvalidDiscoveryMethodError",
    "ScrapeError",
    "TransportError",
]


class DiscoveryError(Exception):
    """Base class for failures that abort discovery of a single site."""


class InvalidDiscoveryMethodError(DiscoveryError):
    def __init__(self, method: object) -> None:
        super().__init__(f"Invalid discovery method: {method!r}")
        self.method = method


class HTTPStatusError(DiscoveryError):
    """The remote site answered with a status other than 2xx or 304."""

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP error {status} fetching {url}")
        self.status = status
        self.url = url


class TransportError(DiscoveryError):
    """DNS, connection or timeout failure. The cause is chained."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ScrapeError(DiscoveryError):
    """The HTML document could not be parsed or queried."""
