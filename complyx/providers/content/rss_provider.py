"""RSS / Atom feed reader built on httpx and feedparser.

Downloads the feed document with httpx (so timeouts and headers match the
rest of the fetchers) and hands the bytes to ``feedparser`` for parsing.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import feedparser
import httpx
import structlog

from complyx.interfaces.feed_provider import IFeedProvider
from complyx.models.feeds import FeedItem, ParsedFeed
from complyx.utils.errors import FetchError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


def select_new_items(items: list[FeedItem], watermark: datetime | None) -> list[FeedItem]:
    """Return items newer than *watermark*, newest first.

    Items without a publication date are always included and sort after
    dated items.  With no watermark every item is new.
    """
    if watermark is not None and watermark.tzinfo is None:
        watermark = watermark.replace(tzinfo=timezone.utc)

    fresh = [
        item
        for item in items
        if item.pub_date is None or watermark is None or _utc(item.pub_date) > watermark
    ]
    dated = sorted(
        (item for item in fresh if item.pub_date is not None),
        key=lambda item: _utc(item.pub_date),
        reverse=True,
    )
    undated = [item for item in fresh if item.pub_date is None]
    return dated + undated


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _entry_date(entry: Any) -> datetime | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    # feedparser normalises to UTC struct_time.
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)


def _entry_content(entry: Any) -> str | None:
    blocks = entry.get("content") or []
    if blocks:
        return blocks[0].get("value") or None
    return entry.get("content_encoded") or None


class RssFeedProvider(IFeedProvider):
    """Feed provider for RSS 2.0, RSS 1.0 and Atom feeds."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        user_agent: str = "Complyx-Knowledge-Bot/1.0",
    ) -> None:
        self._timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "application/rss+xml,application/atom+xml,application/xml,text/xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    async def fetch_feed(self, url: str) -> ParsedFeed:
        parsed_url = urlparse(url)
        if parsed_url.scheme not in ("http", "https") or not parsed_url.hostname:
            raise ValidationError(
                message=f"Invalid feed URL (only http and https are supported): {url}",
                provider_name=self.get_provider_name(),
            )

        try:
            response = await self._client.get(url, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(
                message=f"Timeout fetching feed {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                message=f"HTTP {exc.response.status_code} fetching feed {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"Failed to fetch feed {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        document = feedparser.parse(response.content)
        if document.get("bozo") and not document.get("entries"):
            reason = document.get("bozo_exception")
            raise FetchError(
                message=f"Malformed feed at {url}: {reason}",
                provider_name=self.get_provider_name(),
            )

        channel = document.get("feed", {})
        items = [
            FeedItem(
                title=entry.get("title", "") or "",
                link=entry.get("link", "") or "",
                pub_date=_entry_date(entry),
                description=entry.get("summary") or None,
                content=_entry_content(entry),
                guid=entry.get("id") or None,
                author=entry.get("author") or None,
                categories=[tag.get("term") for tag in entry.get("tags", []) if tag.get("term")],
            )
            for entry in document.get("entries", [])
        ]

        logger.info("rss_feed_fetched", url=url, items=len(items))
        return ParsedFeed(
            title=channel.get("title", "") or "",
            description=channel.get("subtitle") or channel.get("description") or None,
            link=channel.get("link") or None,
            items=items,
        )

    def get_provider_name(self) -> str:
        return "rss"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
