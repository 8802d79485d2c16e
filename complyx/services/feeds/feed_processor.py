"""Turns feed items into ingested documents."""

from __future__ import annotations

import secrets
import time
from typing import TYPE_CHECKING

import structlog
from bs4 import BeautifulSoup

from complyx.models.documents import DocumentMetadata, IngestionOptions, IngestionResult
from complyx.utils.errors import FetchError, ValidationError

if TYPE_CHECKING:
    from complyx.interfaces.content_provider import IContentProvider
    from complyx.models.feeds import FeedConfig, FeedItem
    from complyx.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)


def make_feed_document_id(document_type: str) -> str:
    """``"{type}-rss-{epoch_ms}-{random}"``; unique per ingested item."""
    return f"{document_type}-rss-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def _strip_html(markup: str) -> str:
    return BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)


class FeedProcessor:
    """Fetches the page behind a feed item and ingests it.

    Parameters
    ----------
    ingestion_service:
        Receives the extracted text.
    url_fetcher:
        Downloads the item's link.  When absent, or when the download
        fails, the item's own content or description is ingested instead.
    knowledge_base_version:
        Stamped on every document.
    chunk_size / chunk_overlap:
        Chunking window for feed documents.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        url_fetcher: IContentProvider | None = None,
        knowledge_base_version: str = "v1.0.0",
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
    ) -> None:
        self._ingestion = ingestion_service
        self._url_fetcher = url_fetcher
        self._version = knowledge_base_version
        self._options = IngestionOptions(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

    async def extract_text(self, item: FeedItem) -> tuple[str, str]:
        """Return ``(text, title)`` for *item*.

        Raises
        ------
        ValidationError
            If neither the linked page nor the item carries any text.
        """
        if self._url_fetcher is not None and item.link:
            try:
                content = await self._url_fetcher.fetch(item.link)
                return content.text, item.title or content.title or item.link
            except (FetchError, ValidationError) as exc:
                logger.warning("feed_item_fetch_failed", link=item.link, error=str(exc))

        fallback = _strip_html(item.content or item.description or "")
        if not fallback:
            raise ValidationError(
                message="Feed item content is empty or contains no extractable text"
            )
        return fallback, item.title or item.link

    async def process_item(self, item: FeedItem, config: FeedConfig) -> IngestionResult:
        """Ingest one item as a new document."""
        text, title = await self.extract_text(item)
        metadata = DocumentMetadata(
            document_id=make_feed_document_id(config.document_type),
            title=title or config.name,
            source=config.source,
            url=item.link or None,
            document_type=config.document_type,
            version=self._version,
            publish_date=item.pub_date,
            priority=config.priority,
            scope=config.scope,
        )
        return await self._ingestion.ingest_document(text, metadata, self._options)
