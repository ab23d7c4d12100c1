"""Service layer entry points for FeedScout."""

from __future__ import annotations

from .discoverer import Discoverer  # noqa: F401
from .errors import (  # noqa: F401
    DiscoveryError,
    HTTPStatusError,
    InvalidDiscoveryMethodError,
    ScrapeError,
    TransportError,
)
from .feed_parser import parse_feed  # noqa: F401
from .store import ConfigSiteState, DiscoveredArticleStore  # noqa: F401
from .sweep import run_sweep  # noqa: F401
from .url_normalizer import matches_patterns, normalize  # noqa: F401
from .web_scraper import scrape  # noqa: F401

__all__ = [
    "ConfigSiteState",
    "DiscoveredArticleStore",
    "Discoverer",
    "DiscoveryError",
    "HTTPStatusError",
    "InvalidDiscoveryMethodError",
    "ScrapeError",
    "TransportError",
    "matches_patterns",
    "normalize",
    "parse_feed",
    "run_sweep",
    "scrape",
]
