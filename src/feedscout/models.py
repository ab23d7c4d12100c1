"""Domain models used across the application."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ArticleStatus = Literal["new", "imported", "skipped"]


class CandidateEntry(BaseModel):
    """A candidate article link found in a feed or on a listing page.

    ``url`` is always the normalized URL. It is kept as a plain string so the
    canonical form produced by the normalizer is never re-serialized.
    """

    url: str
    title: Optional[str] = None
    summary: Optional[str] = None
    published_at: Optional[datetime] = None


class DiscoveredArticle(BaseModel):
    """A persisted candidate, unique per site and normalized URL."""

    site_id: str
    url: str
    title: Optional[str] = None
    summary: Optional[str] = None
    published_at: Optional[datetime] = None
    discovered_at: datetime
    status: ArticleStatus = Field(default="new")
