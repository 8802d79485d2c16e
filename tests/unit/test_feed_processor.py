"""Unit tests for turning feed items into documents."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from complyx.interfaces.content_provider import IContentProvider
from complyx.models.documents import FetchedContent, IngestionResult
from complyx.models.feeds import FeedConfig, FeedItem
from complyx.services.feeds.feed_processor import FeedProcessor, make_feed_document_id
from complyx.services.ingestion.ingestion_service import IngestionService
from complyx.utils.errors import FetchError, ValidationError

_CONFIG = FeedConfig(
    url="https://www.ifrs.org/feed.xml",
    name="IFRS news",
    document_type="guidance",
    source="IFRS Foundation",
    priority="high",
    scope="s2",
)


def _ingestion() -> MagicMock:
    service = MagicMock(spec=IngestionService)
    service.ingest_document = AsyncMock(
        side_effect=lambda text, metadata, options: IngestionResult(
            success=True, document_id=metadata.document_id, chunks_created=1, vectors_stored=1
        )
    )
    return service


def _fetcher(**kwargs) -> MagicMock:
    fetcher = MagicMock(spec=IContentProvider)
    fetcher.fetch = AsyncMock(**kwargs)
    return fetcher


class TestDocumentIds:
    def test_format_and_uniqueness(self) -> None:
        first = make_feed_document_id("guidance")
        second = make_feed_document_id("guidance")
        assert re.fullmatch(r"guidance-rss-\d+-[0-9a-f]{8}", first)
        assert first != second


class TestExtractText:
    @pytest.mark.asyncio
    async def test_prefers_linked_page(self) -> None:
        fetcher = _fetcher(return_value=FetchedContent(text="Full article body", title="Page"))
        processor = FeedProcessor(_ingestion(), url_fetcher=fetcher)

        text, title = await processor.extract_text(
            FeedItem(title="Item", link="https://www.ifrs.org/a", description="Summary")
        )

        assert (text, title) == ("Full article body", "Item")

    @pytest.mark.asyncio
    async def test_falls_back_to_stripped_content(self) -> None:
        fetcher = _fetcher(side_effect=FetchError("404"))
        processor = FeedProcessor(_ingestion(), url_fetcher=fetcher)

        text, _ = await processor.extract_text(
            FeedItem(
                title="Item",
                link="https://www.ifrs.org/a",
                content="<p>ISSB <b>update</b></p>",
                description="ignored",
            )
        )

        assert text == "ISSB update"

    @pytest.mark.asyncio
    async def test_description_when_no_fetcher(self) -> None:
        processor = FeedProcessor(_ingestion())
        text, title = await processor.extract_text(
            FeedItem(link="https://www.ifrs.org/a", description="Short summary")
        )
        assert text == "Short summary"
        assert title == "https://www.ifrs.org/a"

    @pytest.mark.asyncio
    async def test_empty_item_rejected(self) -> None:
        processor = FeedProcessor(_ingestion())
        with pytest.raises(ValidationError):
            await processor.extract_text(FeedItem(title="Empty", description="<p> </p>"))


class TestProcessItem:
    @pytest.mark.asyncio
    async def test_metadata_from_config_and_item(self) -> None:
        ingestion = _ingestion()
        processor = FeedProcessor(
            ingestion, knowledge_base_version="v2.0.0", chunk_size=800, chunk_overlap=100
        )
        published = datetime(2024, 5, 1, tzinfo=timezone.utc)

        result = await processor.process_item(
            FeedItem(
                title="ISSB publishes guidance",
                link="https://www.ifrs.org/news/1",
                pub_date=published,
                description="Guidance text",
            ),
            _CONFIG,
        )

        assert result.success
        text, metadata, options = ingestion.ingest_document.call_args.args
        assert text == "Guidance text"
        assert metadata.document_id.startswith("guidance-rss-")
        assert metadata.title == "ISSB publishes guidance"
        assert metadata.source == "IFRS Foundation"
        assert metadata.url == "https://www.ifrs.org/news/1"
        assert metadata.publish_date == published
        assert metadata.version == "v2.0.0"
        assert metadata.priority == "high"
        assert metadata.scope == "s2"
        assert (options.chunk_size, options.chunk_overlap) == (800, 100)

    @pytest.mark.asyncio
    async def test_each_item_is_a_new_document(self) -> None:
        ingestion = _ingestion()
        processor = FeedProcessor(ingestion)
        item = FeedItem(title="Same", description="Same text")

        first = await processor.process_item(item, _CONFIG)
        second = await processor.process_item(item, _CONFIG)

        assert first.document_id != second.document_id
