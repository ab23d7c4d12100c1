"""URL canonicalization and allow/deny filtering for discovered links."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable
from urllib.parse import SplitResult, unquote_plus, urlsplit, urlunsplit

from feedscout.config import ScrapingConfig

__all__ = [
    "ALLOWED_SCHEMES",
    "TRACKING_PARAMS",
    "UrlNormalizationError",
    "matches_patterns",
    "normalize",
]

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

#: Query parameters removed from every URL. Matching is exact and case-sensitive.
TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "ref",
        "source",
    }
)

_WHITESPACE_RE = re.compile(r"\s")


class UrlNormalizationError(ValueError):
    """Raised when a link cannot be turned into a canonical http(s) URL.

    ``reason`` is either ``"invalid_scheme"`` or ``"invalid_url"``.
    """

    def __init__(self, reason: str, link: object) -> None:
        super().__init__(f"{reason}: {link!r}")
        self.reason = reason
        self.link = link


def _split(link: str) -> SplitResult:
    try:
        parts = urlsplit(link)
        # Accessing ``port`` validates it.
        parts.port
    except ValueError as exc:
        raise UrlNormalizationError("invalid_url", link) from exc
    return parts


def _authority(parts: SplitResult) -> str:
    """Return host and port of ``parts`` without any userinfo."""

    return parts.netloc.rpartition("@")[2]


def _split_base(base_url: str) -> SplitResult:
    parts = _split(base_url.strip())
    if parts.scheme not in ALLOWED_SCHEMES or not parts.hostname:
        raise UrlNormalizationError("invalid_url", base_url)
    return parts


def _strip_tracking_params(query: str) -> str:
    kept = []
    for pair in query.split("&"):
        if not pair:
            continue
        key = unquote_plus(pair.split("=", 1)[0])
        if key in TRACKING_PARAMS:
            continue
        kept.append(pair)
    return "&".join(kept)


def normalize(raw_link: str | None, base_url: str | None = None) -> str:
    """Return the canonical form of ``raw_link``.

    Absolute links must use ``http`` or ``https``. Links without a scheme are
    resolved against ``base_url`` by adopting its scheme, host and port while
    keeping their own path, query and fragment. Tracking parameters listed in
    :data:`TRACKING_PARAMS` are removed; remaining parameters keep their order
    and encoding. Normalizing an already normalized URL returns it unchanged.
    """

    if not isinstance(raw_link, str):
        raise UrlNormalizationError("invalid_url", raw_link)

    link = raw_link.strip()
    if not link or _WHITESPACE_RE.search(link):
        raise UrlNormalizationError("invalid_url", raw_link)

    parts = _split(link)

    if parts.scheme:
        if parts.scheme not in ALLOWED_SCHEMES:
            raise UrlNormalizationError("invalid_scheme", raw_link)
        if not parts.hostname:
            raise UrlNormalizationError("invalid_url", raw_link)
        scheme, netloc = parts.scheme, parts.netloc
    else:
        if base_url is None:
            raise UrlNormalizationError("invalid_url", raw_link)
        base = _split_base(base_url)
        scheme = base.scheme
        # ``//host/path`` carries its own authority.
        netloc = parts.netloc or _authority(base)

    path = parts.path
    if path and not path.startswith("/"):
        path = "/" + path

    query = _strip_tracking_params(parts.query)
    return urlunsplit((scheme, netloc, path, query, parts.fragment))


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _any_match(url: str, patterns: Iterable[str]) -> bool:
    return any(_compile(pattern).search(url) for pattern in patterns)


def matches_patterns(url: str, config: ScrapingConfig | None = None) -> bool:
    """Return ``True`` when ``url`` passes the allow list and no deny pattern.

    An empty allow list lets every URL through that stage.
    """

    if config is None:
        return True

    allowed = not config.allow_patterns or _any_match(url, config.allow_patterns)
    denied = _any_match(url, config.deny_patterns)
    if allowed and denied:
        logger.debug("Link %s rejected by deny patterns", url)
    return allowed and not denied
