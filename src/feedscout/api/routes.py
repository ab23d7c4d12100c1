"""API routes exposing site discovery."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from feedscout.config import AppConfig, DiscoverySettings, SiteConfig
from feedscout.models import DiscoveredArticle
from feedscout.services.discoverer import build_discoverer
from feedscout.services.errors import DiscoveryError, InvalidDiscoveryMethodError
from feedscout.services.store import DiscoveredArticleStore
from feedscout.services.sweep import SiteOutcome, run_sweep

logger = logging.getLogger(__name__)

router = APIRouter()


class SiteEntry(BaseModel):
    name: str
    slug: str
    host: str
    discovery_method: str
    is_active: bool
    last_checked_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None


class SitesResponse(BaseModel):
    sites: List[SiteEntry] = Field(default_factory=list)


class DiscoverResponse(BaseModel):
    site: str
    count: int


class SweepResponse(BaseModel):
    outcomes: List[SiteOutcome] = Field(default_factory=list)


class ArticlesResponse(BaseModel):
    site: str
    articles: List[DiscoveredArticle] = Field(default_factory=list)


def _load_config() -> AppConfig:
    try:
        return AppConfig.from_file()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _require_site(config: AppConfig, slug: str) -> SiteConfig:
    site = config.get_site(slug)
    if site is None:
        raise HTTPException(status_code=404, detail=f"Unknown site: {slug}")
    return site


@router.get("/sites", response_model=SitesResponse)
async def list_sites() -> SitesResponse:
    """Return the configured sites with their last discovery outcome."""

    config = _load_config()
    entries = [
        SiteEntry(
            name=site.name,
            slug=site.site_id,
            host=site.host,
            discovery_method=site.discovery_method,
            is_active=site.is_active,
            last_checked_at=site.last_checked_at,
            last_error=site.last_error,
            last_error_at=site.last_error_at,
        )
        for site in config.sites
    ]
    return SitesResponse(sites=entries)


@router.post("/sites/{slug}/discover", response_model=DiscoverResponse)
async def discover_site(slug: str) -> DiscoverResponse:
    """Run discovery for a single site right away."""

    config = _load_config()
    site = _require_site(config, slug)

    try:
        discoverer = build_discoverer(config)
        count = await run_in_threadpool(discoverer.discover, site)
    except InvalidDiscoveryMethodError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DiscoveryError as exc:
        logger.error("Discovery failed for %s: %s", site.name, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (OSError, ValueError) as exc:
        logger.exception("Storing discovery results failed for %s", site.name)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return DiscoverResponse(site=site.site_id, count=count)


@router.post("/discover", response_model=SweepResponse)
async def trigger_sweep() -> SweepResponse:
    """Run discovery for every site that is due for a check."""

    config = _load_config()
    try:
        settings = DiscoverySettings.from_env()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    discoverer = build_discoverer(config, settings=settings)
    report = await run_in_threadpool(
        run_sweep, config.sites, discoverer, max_workers=settings.max_workers
    )
    return SweepResponse(outcomes=report.outcomes)


@router.get("/sites/{slug}/articles", response_model=ArticlesResponse)
async def list_articles(slug: str) -> ArticlesResponse:
    """Return the articles discovered so far for a site."""

    config = _load_config()
    site = _require_site(config, slug)
    store = DiscoveredArticleStore(DiscoverySettings.from_env().blob_root)

    try:
        articles = await run_in_threadpool(store.list_discovered_articles, site.site_id)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return ArticlesResponse(site=site.site_id, articles=articles)
