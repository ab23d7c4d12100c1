"""Run discovery across every site that is due for a check."""

from __future__ import annotations

import datetime
import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List

from pydantic import BaseModel, Field

from feedscout.config import SiteConfig
from feedscout.services.discoverer import Discoverer
from feedscout.services.errors import DiscoveryError

__all__ = ["SiteOutcome", "SweepReport", "eligible_sites", "run_sweep"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 5


class SiteOutcome(BaseModel):
    """Result of discovering a single site during a sweep."""

    site: str
    url: str
    count: int | None = None
    error: str | None = None


class SweepReport(BaseModel):
    outcomes: List[SiteOutcome] = Field(default_factory=list)

    @property
    def errors(self) -> List[SiteOutcome]:
        return [outcome for outcome in self.outcomes if outcome.error is not None]


def _is_due(site: SiteConfig, now: datetime.datetime) -> bool:
    if site.last_checked_at is None:
        return True
    last_checked = site.last_checked_at
    if last_checked.tzinfo is None:
        last_checked = last_checked.replace(tzinfo=datetime.UTC)
    return now - last_checked >= datetime.timedelta(hours=site.check_interval_hours)


def eligible_sites(
    sites: Iterable[SiteConfig], now: datetime.datetime | None = None
) -> List[SiteConfig]:
    """Return active sites whose check interval has elapsed.

    Sites never checked come first, then the least recently checked.
    """

    current = now or datetime.datetime.now(datetime.UTC)
    due = [site for site in sites if site.is_active and _is_due(site, current)]
    oldest = datetime.datetime.min.replace(tzinfo=datetime.UTC)

    def _sort_key(site: SiteConfig) -> datetime.datetime:
        checked = site.last_checked_at
        if checked is None:
            return oldest
        return checked if checked.tzinfo else checked.replace(tzinfo=datetime.UTC)

    return sorted(due, key=_sort_key)


def _discover_site(discoverer: Discoverer, site: SiteConfig) -> SiteOutcome:
    outcome = SiteOutcome(site=site.name, url=str(site.url))
    try:
        outcome.count = discoverer.discover(site)
    except DiscoveryError as exc:
        logger.error("Discovery failed for %s: %s", site.name, exc)
        outcome.error = str(exc)
    except (OSError, ValueError) as exc:
        logger.exception("Storing discovery results failed for %s", site.name)
        outcome.error = str(exc)
    else:
        logger.info("Discovered %d articles from %s", outcome.count, site.name)
    return outcome


def _discover_host(discoverer: Discoverer, sites: List[SiteConfig]) -> List[SiteOutcome]:
    return [_discover_site(discoverer, site) for site in sites]


def run_sweep(
    sites: Iterable[SiteConfig],
    discoverer: Discoverer,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    now: datetime.datetime | None = None,
    force: bool = False,
) -> SweepReport:
    """Discover every eligible site, at most one request per host at a time.

    Hosts are processed concurrently by up to ``max_workers`` threads; the
    sites of one host run sequentially. A failing site is logged and reported
    without stopping the sweep. ``force`` skips the eligibility check.
    """

    due = list(sites) if force else eligible_sites(sites, now)
    logger.info("Running discovery for %d source sites", len(due))

    by_host: OrderedDict[str, List[SiteConfig]] = OrderedDict()
    for site in due:
        by_host.setdefault(site.host, []).append(site)

    report = SweepReport()
    if not by_host:
        return report

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(_discover_host, discoverer, host_sites)
            for host_sites in by_host.values()
        ]
        for future in futures:
            report.outcomes.extend(future.result())

    return report
