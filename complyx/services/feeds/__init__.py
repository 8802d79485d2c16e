"""Scheduled RSS/Atom ingestion."""

from complyx.services.feeds.feed_processor import FeedProcessor
from complyx.services.feeds.scheduler import FeedScheduler
from complyx.services.feeds.state_store import FeedStateStore

__all__ = ["FeedProcessor", "FeedScheduler", "FeedStateStore"]
