"""Unit tests for JSON persistence of the feed registry."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from complyx.models.feeds import FeedConfig, ScheduledFeed
from complyx.services.feeds.state_store import FeedStateStore


def _feed(feed_id: str = "feed-1") -> ScheduledFeed:
    return ScheduledFeed(
        id=feed_id,
        config=FeedConfig(url="https://www.ifrs.org/feed.xml", name="IFRS news"),
        cron_expression="*/60 * * * *",
        last_processed_date=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestFeedStateStore:
    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path) -> None:
        state = await FeedStateStore(tmp_path / "feeds.json").load()
        assert state.feeds == []
        assert state.last_updated is None

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path) -> None:
        store = FeedStateStore(tmp_path / "nested" / "feeds.json")

        saved = await store.save([_feed()])
        loaded = await store.load()

        assert saved.last_updated is not None
        assert loaded.feeds == [_feed()]
        assert loaded.feeds[0].cron_expression == "*/60 * * * *"

    @pytest.mark.asyncio
    async def test_file_shape(self, tmp_path) -> None:
        path = tmp_path / "feeds.json"
        await FeedStateStore(path).save([_feed()])

        raw = json.loads(path.read_text(encoding="utf-8"))

        assert set(raw) == {"feeds", "last_updated"}
        assert raw["feeds"][0]["id"] == "feed-1"
        assert raw["feeds"][0]["config"]["url"] == "https://www.ifrs.org/feed.xml"

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path) -> None:
        store = FeedStateStore(tmp_path / "feeds.json")
        await store.save([_feed("a")])
        await store.save([_feed("b")])
        assert [p.name for p in tmp_path.iterdir()] == ["feeds.json"]

    @pytest.mark.asyncio
    async def test_corrupt_file_is_empty(self, tmp_path) -> None:
        path = tmp_path / "feeds.json"
        path.write_text("{not json", encoding="utf-8")
        state = await FeedStateStore(path).load()
        assert state.feeds == []
