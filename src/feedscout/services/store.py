"""Persistence of discovered articles and site discovery state."""

from __future__ import annotations

import datetime
import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Protocol

from pydantic import ValidationError

from feedscout.blobstore import resolve_blob_root, store_json
from feedscout.config import AppConfig, SiteConfig
from feedscout.models import CandidateEntry, DiscoveredArticle

__all__ = [
    "ArticleStore",
    "ConfigSiteState",
    "DiscoveredArticleStore",
    "SiteState",
]

logger = logging.getLogger(__name__)

DISCOVERED_SUBDIR = "discovered"


class ArticleStore(Protocol):
    def upsert_discovered_articles(self, site_id: str, entries: Iterable[CandidateEntry]) -> int:
        ...


class SiteState(Protocol):
    def mark_checked(
        self, site: SiteConfig, etag: str | None = None, last_modified: str | None = None
    ) -> None:
        ...

    def mark_error(self, site: SiteConfig, message: str) -> None:
        ...


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(microsecond=0)


class DiscoveredArticleStore:
    """JSON file backed store holding one document per site.

    Rows are keyed by normalized URL, so upserting the same entry twice leaves
    a single row.
    """

    def __init__(self, blob_root: Path | str | None = None) -> None:
        self._root = resolve_blob_root(blob_root)
        self._lock = threading.Lock()

    def _site_path(self, site_id: str) -> Path:
        return self._root / DISCOVERED_SUBDIR / f"site={site_id}.json"

    def _load(self, site_id: str) -> dict[str, DiscoveredArticle]:
        path = self._site_path(site_id)
        if not path.exists():
            return {}

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in discovered article file: {path}") from exc

        articles: dict[str, DiscoveredArticle] = {}
        for raw in payload.get("articles", []) if isinstance(payload, dict) else []:
            try:
                article = DiscoveredArticle.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping invalid stored article in %s: %s", path, exc)
                continue
            articles[article.url] = article
        return articles

    def _save(self, site_id: str, articles: dict[str, DiscoveredArticle]) -> None:
        payload = {"articles": [article.model_dump(mode="json") for article in articles.values()]}
        store_json(self._site_path(site_id), payload)

    def upsert_discovered_articles(self, site_id: str, entries: Iterable[CandidateEntry]) -> int:
        """Insert new entries and refresh metadata of known ones.

        Existing rows keep their ``discovered_at`` and ``status``. Returns the
        number of rows that did not exist before.
        """

        now = _utcnow()
        with self._lock:
            articles = self._load(site_id)
            inserted = 0
            for entry in entries:
                existing = articles.get(entry.url)
                if existing is None:
                    articles[entry.url] = DiscoveredArticle(
                        site_id=site_id,
                        url=entry.url,
                        title=entry.title,
                        summary=entry.summary,
                        published_at=entry.published_at,
                        discovered_at=now,
                    )
                    inserted += 1
                else:
                    articles[entry.url] = existing.model_copy(
                        update={
                            "title": entry.title,
                            "summary": entry.summary,
                            "published_at": entry.published_at,
                        }
                    )
            self._save(site_id, articles)

        logger.debug("Stored %d new articles for %s", inserted, site_id)
        return inserted

    def list_discovered_articles(self, site_id: str) -> List[DiscoveredArticle]:
        """Return the stored articles of ``site_id`` in insertion order."""

        with self._lock:
            return list(self._load(site_id).values())

    def get_discovered_article(self, site_id: str, url: str) -> DiscoveredArticle | None:
        with self._lock:
            return self._load(site_id).get(url)


class ConfigSiteState:
    """Record discovery outcomes on :class:`SiteConfig` objects.

    When ``path`` is given the whole configuration is written back after each
    change so validators and errors survive restarts.
    """

    def __init__(self, config: AppConfig | None = None, path: Path | str | None = None) -> None:
        self._config = config
        self._path = path
        self._lock = threading.Lock()

    def _persist(self) -> None:
        if self._config is not None and self._path is not None:
            self._config.dump(self._path)

    def mark_checked(
        self, site: SiteConfig, etag: str | None = None, last_modified: str | None = None
    ) -> None:
        with self._lock:
            site.last_checked_at = _utcnow()
            site.last_error = None
            site.last_error_at = None
            if etag is not None:
                site.etag = etag
            if last_modified is not None:
                site.last_modified = last_modified
            self._persist()

    def mark_error(self, site: SiteConfig, message: str) -> None:
        with self._lock:
            site.last_error = message
            site.last_error_at = _utcnow()
            self._persist()
