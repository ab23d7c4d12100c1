"""Selector driven link extraction from listing pages."""

from __future__ import annotations

import logging
from typing import Iterator, List

from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from feedscout.config import ScrapingConfig
from feedscout.models import CandidateEntry
from feedscout.services.errors import ScrapeError
from feedscout.services.url_normalizer import UrlNormalizationError, matches_patterns, normalize

__all__ = ["DEFAULT_LINK_SELECTOR", "DEFAULT_LIST_SELECTOR", "scrape"]

logger = logging.getLogger(__name__)

DEFAULT_LIST_SELECTOR = "body"
DEFAULT_LINK_SELECTOR = "a[href]"


def _select_links(soup: BeautifulSoup, config: ScrapingConfig) -> Iterator[Tag]:
    list_selector = config.list_selector or DEFAULT_LIST_SELECTOR
    link_selector = config.link_selector or DEFAULT_LINK_SELECTOR
    try:
        containers = soup.select(list_selector)
        for container in containers:
            yield from container.select(link_selector)
    except SelectorSyntaxError as exc:
        raise ScrapeError(f"Invalid CSS selector: {exc}") from exc


def _candidate(anchor: Tag, base_url: str, config: ScrapingConfig) -> CandidateEntry | None:
    href = anchor.get("href")
    try:
        url = normalize(href if isinstance(href, str) else None, base_url)
    except UrlNormalizationError as exc:
        logger.debug("Dropping scraped link: %s", exc)
        return None

    if not matches_patterns(url, config):
        return None

    title = anchor.get_text(" ", strip=True)
    return CandidateEntry(url=url, title=title or None)


def scrape(html: str | bytes, base_url: str, config: ScrapingConfig | None = None) -> List[CandidateEntry]:
    """Return article candidates linked from ``html``.

    Links are collected from every container matching ``list_selector`` in
    document order, normalized against ``base_url``, filtered through the
    allow/deny patterns and deduplicated by URL (first occurrence wins).

    Raises :class:`ScrapeError` when the document or a selector is unusable.
    """

    config = config or ScrapingConfig()
    try:
        soup = BeautifulSoup(html, "lxml")
    except (ParserRejectedMarkup, ValueError, TypeError) as exc:
        logger.warning("Web scraping failed for %s: %s", base_url, exc)
        raise ScrapeError(f"Could not parse HTML from {base_url}: {exc}") from exc

    entries: List[CandidateEntry] = []
    seen: set[str] = set()
    for anchor in _select_links(soup, config):
        entry = _candidate(anchor, base_url, config)
        if entry is None or entry.url in seen:
            continue
        seen.add(entry.url)
        entries.append(entry)

    logger.debug("Scraped %d candidate links from %s", len(entries), base_url)
    return entries
