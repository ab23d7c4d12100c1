"""Configuration models and helpers for FeedScout site discovery."""

from __future__ import annotations

import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, HttpUrl, ValidationError, field_validator, model_validator

__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_USER_AGENT",
    "DiscoveryMethod",
    "DiscoverySettings",
    "ScrapingConfig",
    "SiteConfig",
    "resolve_config_path",
    "slugify",
]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "data" / "sites.json"
DEFAULT_USER_AGENT = "FeedScoutBot/0.1"

DiscoveryMethod = Literal["rss", "scraping", "hybrid"]


def slugify(name: str) -> str:
    """Return a URL friendly slug for ``name``."""

    normalized = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    slug = normalized.strip("-")
    return slug or "site"


class ScrapingConfig(BaseModel):
    """Selectors and URL filters used when scraping a site's HTML."""

    list_selector: str | None = Field(
        default=None,
        description="CSS selector for the containers holding article links. Defaults to the body.",
    )
    link_selector: str | None = Field(
        default=None,
        description="CSS selector for link elements inside each container. Defaults to ``a[href]``.",
    )
    allow_patterns: List[str] = Field(
        default_factory=list,
        description="Regular expressions a link must match (any). Empty allows every link.",
    )
    deny_patterns: List[str] = Field(
        default_factory=list,
        description="Regular expressions that reject a link when any of them matches.",
    )

    @field_validator("allow_patterns", "deny_patterns")
    @classmethod
    def _patterns_compile(cls, patterns: List[str]) -> List[str]:
        for pattern in patterns:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"Invalid pattern {pattern!r}: {exc}") from exc
        return patterns


class SiteConfig(BaseModel):
    """Configuration and discovery state for a single external site."""

    name: str = Field(..., description="Human friendly site name")
    url: HttpUrl = Field(..., description="Homepage or listing page of the site")
    rss_url: HttpUrl | None = Field(
        default=None,
        description="Feed URL. The site URL is fetched as the feed when omitted.",
    )
    discovery_method: DiscoveryMethod = Field(default="rss")
    scraping_config: ScrapingConfig = Field(default_factory=ScrapingConfig)
    check_interval_hours: int = Field(default=24, gt=0)
    is_active: bool = Field(default=True)
    language: str | None = Field(default=None)

    etag: str | None = Field(default=None, description="ETag of the last successful feed fetch")
    last_modified: str | None = Field(
        default=None, description="Last-Modified header of the last successful feed fetch"
    )
    last_checked_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None

    @property
    def site_id(self) -> str:
        """Return the identifier used to key discovered articles."""

        return slugify(self.name)

    @property
    def host(self) -> str:
        return urlparse(str(self.url)).netloc

    @property
    def feed_url(self) -> str:
        """Return the URL fetched by the RSS strategy."""

        return str(self.rss_url if self.rss_url is not None else self.url)


class DiscoverySettings(BaseModel):
    """Runtime settings for the HTTP side of discovery."""

    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=5, gt=0)
    blob_root: Path | None = None

    @classmethod
    def from_env(cls) -> "DiscoverySettings":
        """Build settings from ``FEEDSCOUT_*`` environment variables."""

        values: dict[str, str] = {}
        for field_name in cls.model_fields:
            raw = os.environ.get(f"FEEDSCOUT_{field_name.upper()}")
            if raw:
                values[field_name] = raw
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ValueError(f"Invalid FEEDSCOUT_* environment settings\n{exc}") from exc


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Return ``path``, the ``FEEDSCOUT_CONFIG_PATH`` override or the default."""

    if path:
        return Path(path)
    override = os.environ.get("FEEDSCOUT_CONFIG_PATH")
    return Path(override) if override else DEFAULT_CONFIG_PATH


class AppConfig(BaseModel):
    """Collection of :class:`SiteConfig` entries to discover articles from."""

    sites: List[SiteConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_site_ids(self) -> "AppConfig":
        seen: set[str] = set()
        for site in self.sites:
            if site.site_id in seen:
                raise ValueError(f"Duplicate site name: {site.name}")
            seen.add(site.site_id)
        return self

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> "AppConfig":
        """Load configuration data from a JSON file."""

        config_path = resolve_config_path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str | None = None) -> None:
        """Persist the configuration, including discovery state, back to disk."""

        config_path = resolve_config_path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def iter_sites(self) -> Iterable[SiteConfig]:
        """Iterate over configured sites."""

        return iter(self.sites)

    def add_site(self, site: SiteConfig) -> None:
        """Append a new site configuration to the collection."""

        if self.get_site(site.site_id) is not None:
            raise ValueError(f"Duplicate site name: {site.name}")
        self.sites.append(site)

    def get_site(self, site_id: str) -> SiteConfig | None:
        """Return the site whose slug equals ``site_id``."""

        normalized = site_id.strip().lower()
        return next((site for site in self.sites if site.site_id == normalized), None)
