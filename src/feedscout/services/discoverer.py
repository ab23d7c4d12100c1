"""Discovery orchestration: fetch, parse, persist and record site state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping

import requests
from requests.structures import CaseInsensitiveDict

from feedscout.config import AppConfig, DiscoverySettings, SiteConfig, resolve_config_path
from feedscout.models import CandidateEntry
from feedscout.services.errors import (
    DiscoveryError,
    HTTPStatusError,
    InvalidDiscoveryMethodError,
    TransportError,
)
from feedscout.services.feed_parser import parse_feed
from feedscout.services.store import (
    ArticleStore,
    ConfigSiteState,
    DiscoveredArticleStore,
    SiteState,
)
from feedscout.services.web_scraper import scrape

__all__ = ["Discoverer", "FetchResult", "build_discoverer", "response_header"]

logger = logging.getLogger(__name__)

HTTP_NOT_MODIFIED = 304


def response_header(headers: Mapping[str, str] | None, name: str) -> str | None:
    """Return header ``name`` from ``headers`` ignoring case."""

    if not headers:
        return None
    return CaseInsensitiveDict(headers).get(name)


@dataclass
class FetchResult:
    """Body and cache validators of a successful response.

    ``not_modified`` is set for a 304 answer, in which case ``body`` is empty.
    """

    body: bytes = b""
    etag: str | None = None
    last_modified: str | None = None
    not_modified: bool = False


class Discoverer:
    """Discover article candidates for a site and record the outcome.

    ``store`` receives the candidates and ``site_state`` the check results.
    Both default to the file backed implementations in
    :mod:`feedscout.services.store`.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        store: ArticleStore | None = None,
        site_state: SiteState | None = None,
        settings: DiscoverySettings | None = None,
    ) -> None:
        self._settings = settings or DiscoverySettings()
        self._session = session or requests.Session()
        self._store = store or DiscoveredArticleStore(self._settings.blob_root)
        self._site_state = site_state or ConfigSiteState()

    def discover(self, site: SiteConfig) -> int:
        """Run the configured strategy for ``site`` and return the entry count.

        Raises a :class:`DiscoveryError` subclass on failure. Transport and
        HTTP failures are also recorded on the site before being raised.
        """

        strategies: dict[str, Callable[[SiteConfig], int]] = {
            "rss": self.discover_from_rss,
            "scraping": self.discover_from_scraping,
            "hybrid": self.discover_hybrid,
        }
        strategy = strategies.get(site.discovery_method)
        if strategy is None:
            raise InvalidDiscoveryMethodError(site.discovery_method)
        return strategy(site)

    def discover_from_rss(self, site: SiteConfig) -> int:
        feed_url = site.feed_url
        try:
            result = self._fetch(feed_url, self._conditional_headers(site))
            if result.not_modified:
                logger.info("Feed %s not modified since last check", feed_url)
                self._site_state.mark_checked(site)
                return 0
            entries = parse_feed(result.body, feed_url)
        except DiscoveryError as exc:
            self._site_state.mark_error(site, str(exc))
            raise

        self._store.upsert_discovered_articles(site.site_id, entries)
        self._site_state.mark_checked(site, result.etag, result.last_modified)
        return len(entries)

    def discover_from_scraping(self, site: SiteConfig) -> int:
        base_url = str(site.url)
        try:
            result = self._fetch(base_url, {})
            entries: List[CandidateEntry] = scrape(result.body, base_url, site.scraping_config)
        except DiscoveryError as exc:
            self._site_state.mark_error(site, str(exc))
            raise

        self._store.upsert_discovered_articles(site.site_id, entries)
        self._site_state.mark_checked(site)
        return len(entries)

    def discover_hybrid(self, site: SiteConfig) -> int:
        """Try the feed first and scrape the site when it yields nothing.

        A failing feed is not reported: the scraping outcome is what the
        caller sees.
        """

        try:
            count = self.discover_from_rss(site)
        except DiscoveryError as exc:
            logger.info("Feed discovery failed for %s, falling back to scraping: %s", site.name, exc)
        else:
            if count > 0:
                return count
            logger.info("Feed for %s yielded no entries, falling back to scraping", site.name)
        return self.discover_from_scraping(site)

    def _conditional_headers(self, site: SiteConfig) -> dict[str, str]:
        headers: dict[str, str] = {}
        if site.etag:
            headers["If-None-Match"] = site.etag
        if site.last_modified:
            headers["If-Modified-Since"] = site.last_modified
        return headers

    def _fetch(self, url: str, headers: Mapping[str, str]) -> FetchResult:
        request_headers = {"User-Agent": self._settings.user_agent, **headers}
        try:
            response = self._session.get(
                url,
                headers=request_headers,
                timeout=self._settings.timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            raise TransportError(url, str(exc)) from exc

        status = response.status_code
        if status == HTTP_NOT_MODIFIED:
            return FetchResult(not_modified=True)
        if not 200 <= status < 300:
            raise HTTPStatusError(status, url)

        return FetchResult(
            body=response.content,
            etag=response_header(response.headers, "ETag"),
            last_modified=response_header(response.headers, "Last-Modified"),
        )


def build_discoverer(
    config: AppConfig,
    config_path: Path | str | None = None,
    settings: DiscoverySettings | None = None,
) -> Discoverer:
    """Return a :class:`Discoverer` that writes site state back to ``config_path``."""

    resolved = settings or DiscoverySettings.from_env()
    return Discoverer(
        store=DiscoveredArticleStore(resolved.blob_root),
        site_state=ConfigSiteState(config, resolve_config_path(config_path)),
        settings=resolved,
    )
