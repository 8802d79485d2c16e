"""Feed scheduler models.

:class:`ScheduledFeed` is the only mutable model: the scheduler updates its
check/processed/next-run timestamps on every run and persists it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from complyx.models.documents import DocumentType, Priority


class FeedConfig(BaseModel):
    """Operator-supplied feed registration."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    url: str = Field(min_length=1)
    name: str = Field(min_length=1)
    enabled: bool = True
    update_interval: int | None = Field(default=None, gt=0, description="Minutes between runs.")
    cron_expression: str | None = None
    document_type: DocumentType = DocumentType.GUIDANCE
    source: str = "RSS Feed"
    priority: Priority = Priority.MEDIUM
    scope: str | None = None


class ScheduledFeed(BaseModel):
    """A registered feed plus its scheduling and watermark state."""

    id: str
    config: FeedConfig
    cron_expression: str
    enabled: bool = True
    last_check_date: datetime | None = None
    last_processed_date: datetime | None = None
    next_run_date: datetime | None = None


class FeedState(BaseModel):
    """On-disk form of the scheduler registry."""

    feeds: list[ScheduledFeed] = Field(default_factory=list)
    last_updated: datetime | None = None


class ScrapingResult(BaseModel):
    """Report of one feed-processing run."""

    model_config = ConfigDict(frozen=True)

    feed_id: str
    feed_name: str = ""
    success: bool
    items_processed: int = Field(default=0, ge=0)
    items_failed: int = Field(default=0, ge=0)
    documents_ingested: int = Field(default=0, ge=0)
    processing_time_ms: float = Field(default=0.0, ge=0.0)
    error: str | None = None
    errors: list[str] = Field(default_factory=list)


class FeedStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_feeds: int
    enabled_feeds: int
    disabled_feeds: int
    active_jobs: int


class FeedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    link: str = ""
    pub_date: datetime | None = None
    description: str | None = None
    content: str | None = None
    guid: str | None = None
    author: str | None = None
    categories: list[str] = Field(default_factory=list)


class ParsedFeed(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str | None = None
    link: str | None = None
    items: list[FeedItem] = Field(default_factory=list)
