"""Tolerant RSS 2.0 and Atom parsing into :class:`CandidateEntry` objects."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterator, List

from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import Tag

from feedscout.models import CandidateEntry
from feedscout.services.url_normalizer import UrlNormalizationError, normalize

__all__ = ["parse_feed", "parse_timestamp"]

logger = logging.getLogger(__name__)

_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a strict ISO-8601 timestamp carrying a UTC offset.

    Anything else, including RFC-822 ``pubDate`` strings, yields ``None``.
    """

    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    collapsed = " ".join(text.split())
    return collapsed or None


def _element_text(element: Tag | None) -> str | None:
    """Return the plain text of ``element`` with CDATA and markup removed."""

    if element is None:
        return None

    text = _CDATA_RE.sub(r"\1", element.get_text())
    if "<" in text:
        # Feeds embed escaped HTML in descriptions.
        fragment = BeautifulSoup(text, "lxml")
        text = fragment.get_text(" ")
    return _clean(text)


def _child_text(parent: Tag, *names: str) -> str | None:
    """Return the text of the first of ``names`` present with content."""

    for name in names:
        value = _element_text(parent.find(name))
        if value:
            return value
    return None


def _rss_child(item: Tag, name: str) -> Tag | None:
    """Return the plain RSS child ``name``, ignoring ``atom:link`` and friends."""

    return item.find(lambda tag: tag.name == name and not tag.prefix)


def _rss_text(item: Tag, name: str) -> str | None:
    return _element_text(_rss_child(item, name))


def _entry(
    link: str | None,
    base_url: str,
    title: str | None,
    summary: str | None,
    timestamp: str | None,
) -> CandidateEntry | None:
    try:
        url = normalize(link, base_url)
    except UrlNormalizationError as exc:
        logger.debug("Dropping feed entry with unusable link: %s", exc)
        return None
    return CandidateEntry(
        url=url,
        title=title,
        summary=summary,
        published_at=parse_timestamp(timestamp),
    )


def _rss_items(soup: BeautifulSoup, base_url: str) -> Iterator[CandidateEntry | None]:
    for item in soup.find_all("item"):
        yield _entry(
            _rss_text(item, "link"),
            base_url,
            _rss_text(item, "title"),
            _rss_text(item, "description"),
            _rss_text(item, "pubDate"),
        )


def _atom_link(entry: Tag) -> str | None:
    link = entry.find("link")
    if link is None:
        return None
    href = link.get("href")
    if href:
        return str(href).strip()
    return _element_text(link)


def _atom_entries(soup: BeautifulSoup, base_url: str) -> Iterator[CandidateEntry | None]:
    for entry in soup.find_all("entry"):
        yield _entry(
            _atom_link(entry),
            base_url,
            _child_text(entry, "title"),
            _child_text(entry, "summary", "content"),
            _child_text(entry, "updated", "published"),
        )


def parse_feed(xml_text: str | bytes, base_url: str) -> List[CandidateEntry]:
    """Parse an RSS 2.0 or Atom document into candidate entries.

    RSS ``<item>`` elements are tried first and Atom ``<entry>`` elements only
    when no item exists. Entries whose link cannot be normalized are dropped.
    A document that cannot be parsed yields an empty list.
    """

    try:
        soup = BeautifulSoup(xml_text, "xml")
    except (ParserRejectedMarkup, ValueError, TypeError) as exc:
        logger.warning("Feed parsing failed for %s: %s", base_url, exc)
        return []

    if soup.find("item") is not None:
        candidates = _rss_items(soup, base_url)
    else:
        candidates = _atom_entries(soup, base_url)

    entries = [entry for entry in candidates if entry is not None]
    logger.debug("Parsed %d feed entries for %s", len(entries), base_url)
    return entries
