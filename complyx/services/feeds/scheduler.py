"""Cron-driven feed scheduler.

Keeps the registry of :class:`ScheduledFeed` entries, persists it through
:class:`FeedStateStore`, and while started runs one asyncio task per
enabled feed.  Each task sleeps until the next croniter occurrence, then
processes the feed.

Processing a feed:

1. fetch and parse the feed
2. select items newer than the feed's watermark (undated items always)
3. ingest them one by one, newest first, pausing between items
4. advance the watermark to the newest publication date seen
5. persist the registry

An item that fails for any reason is counted and skipped.  The watermark
only moves forward.  A feed that cannot be fetched yields a
failed :class:`ScrapingResult` and stays registered and scheduled.
"""

from __future__ import annotations

import asyncio
import secrets
import time
from datetime import datetime, timezone

import structlog
from croniter import croniter

from complyx.interfaces.feed_provider import IFeedProvider
from complyx.models.feeds import (
    FeedConfig,
    FeedItem,
    FeedStatistics,
    ScheduledFeed,
    ScrapingResult,
)
from complyx.providers.content.rss_provider import select_new_items
from complyx.services.feeds.feed_processor import FeedProcessor
from complyx.services.feeds.state_store import FeedStateStore
from complyx.utils.errors import (
    ComplyxError,
    ConfigurationError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CRON = "0 */6 * * *"


def cron_for(config: FeedConfig, default_cron: str = DEFAULT_CRON) -> str:
    """Explicit cron wins, then ``update_interval`` minutes, then the default."""
    if config.cron_expression:
        return config.cron_expression
    if config.update_interval:
        return f"*/{config.update_interval} * * * *"
    return default_cron


def make_feed_id() -> str:
    return f"feed-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class FeedScheduler:
    """Registry and runner for RSS/Atom feeds.

    Parameters
    ----------
    feed_provider:
        Downloads and parses feeds.
    processor:
        Ingests individual items.
    state_store:
        Persists the registry after every change.
    default_cron:
        Schedule for feeds with neither a cron expression nor an interval.
    item_delay:
        Seconds between items within one feed run.
    inter_feed_delay:
        Seconds between feeds in :meth:`process_all_feeds`.
    """

    def __init__(
        self,
        feed_provider: IFeedProvider,
        processor: FeedProcessor,
        state_store: FeedStateStore,
        default_cron: str = DEFAULT_CRON,
        item_delay: float = 1.0,
        inter_feed_delay: float = 5.0,
    ) -> None:
        self._feed_provider = feed_provider
        self._processor = processor
        self._state_store = state_store
        self._default_cron = default_cron
        self._item_delay = item_delay
        self._inter_feed_delay = inter_feed_delay

        self._feeds: dict[str, ScheduledFeed] = {}
        self._jobs: dict[str, asyncio.Task[None]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._loaded = False
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Populate the registry from the state file (once)."""
        if self._loaded:
            return
        state = await self._state_store.load()
        self._feeds = {feed.id: feed for feed in state.feeds}
        self._loaded = True

    async def start(self) -> None:
        await self.load()
        self._running = True
        for feed_id, feed in self._feeds.items():
            if feed.enabled:
                self.schedule_feed(feed_id)
        logger.info("feed_scheduler_started", feeds=len(self._feeds), jobs=len(self._jobs))

    async def stop(self) -> None:
        self._running = False
        jobs = list(self._jobs.values())
        self._jobs.clear()
        for job in jobs:
            job.cancel()
        await asyncio.gather(*jobs, return_exceptions=True)
        logger.info("feed_scheduler_stopped", cancelled_jobs=len(jobs))

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def register_feed(self, config: FeedConfig) -> ScheduledFeed:
        await self.load()
        feed = ScheduledFeed(
            id=make_feed_id(),
            config=config,
            cron_expression=cron_for(config, self._default_cron),
            enabled=config.enabled,
        )
        self._feeds[feed.id] = feed
        if feed.enabled:
            self.schedule_feed(feed.id)
        await self._persist()
        logger.info(
            "feed_registered",
            feed_id=feed.id,
            name=config.name,
            cron=feed.cron_expression,
            enabled=feed.enabled,
        )
        return feed

    async def unregister_feed(self, feed_id: str) -> None:
        await self.load()
        if feed_id not in self._feeds:
            raise NotFoundError(message=f"Feed {feed_id} not found")
        self._cancel_job(feed_id)
        del self._feeds[feed_id]
        self._locks.pop(feed_id, None)
        await self._persist()
        logger.info("feed_unregistered", feed_id=feed_id)

    async def set_feed_enabled(self, feed_id: str, enabled: bool) -> ScheduledFeed:
        feed = await self.get_feed(feed_id)
        feed.enabled = enabled
        if enabled:
            self.schedule_feed(feed_id)
        else:
            self._cancel_job(feed_id)
            feed.next_run_date = None
        await self._persist()
        logger.info("feed_enabled_changed", feed_id=feed_id, enabled=enabled)
        return feed

    def schedule_feed(self, feed_id: str) -> bool:
        """(Re)schedule *feed_id*; returns whether a job is now active.

        An invalid cron expression is logged and leaves the feed
        unscheduled.  Jobs only run while the scheduler is started; before
        that only ``next_run_date`` is computed.
        """
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise NotFoundError(message=f"Feed {feed_id} not found")
        self._cancel_job(feed_id)

        try:
            if not croniter.is_valid(feed.cron_expression):
                raise ValueError("not a valid cron expression")
            feed.next_run_date = croniter(
                feed.cron_expression, datetime.now(timezone.utc)
            ).get_next(datetime)
        except ValueError as exc:
            logger.error(
                "feed_cron_invalid", feed_id=feed_id, cron=feed.cron_expression, error=str(exc)
            )
            feed.next_run_date = None
            return False

        if not self._running:
            return False

        self._jobs[feed_id] = asyncio.create_task(
            self._run_schedule(feed_id), name=f"feed-job-{feed_id}"
        )
        logger.info("feed_scheduled", feed_id=feed_id, cron=feed.cron_expression)
        return True

    async def get_feeds(self) -> list[ScheduledFeed]:
        await self.load()
        return list(self._feeds.values())

    async def get_feed(self, feed_id: str) -> ScheduledFeed:
        await self.load()
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise NotFoundError(message=f"Feed {feed_id} not found")
        return feed

    async def get_statistics(self) -> FeedStatistics:
        feeds = await self.get_feeds()
        enabled = sum(1 for feed in feeds if feed.enabled)
        return FeedStatistics(
            total_feeds=len(feeds),
            enabled_feeds=enabled,
            disabled_feeds=len(feeds) - enabled,
            active_jobs=sum(1 for job in self._jobs.values() if not job.done()),
        )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_feed(self, feed_id: str) -> ScrapingResult:
        """Run *feed_id* once.

        Raises
        ------
        NotFoundError
            If the feed is not registered.
        """
        feed = await self.get_feed(feed_id)
        lock = self._locks.setdefault(feed_id, asyncio.Lock())
        async with lock:
            return await self._process(feed)

    async def process_all_feeds(self) -> list[ScrapingResult]:
        """Process every enabled feed in turn, pausing between feeds."""
        feeds = [feed for feed in await self.get_feeds() if feed.enabled]
        results: list[ScrapingResult] = []
        for position, feed in enumerate(feeds):
            if feed.id not in self._feeds:
                continue
            try:
                results.append(await self.process_feed(feed.id))
            except NotFoundError:
                continue
            except ConfigurationError:
                raise
            except Exception as exc:
                logger.exception("feed_run_crashed", feed_id=feed.id)
                results.append(
                    ScrapingResult(
                        feed_id=feed.id,
                        feed_name=feed.config.name,
                        success=False,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                )
            if self._inter_feed_delay > 0 and position < len(feeds) - 1:
                await asyncio.sleep(self._inter_feed_delay)
        return results

    async def _process(self, feed: ScheduledFeed) -> ScrapingResult:
        start = time.monotonic()
        feed.last_check_date = datetime.now(timezone.utc)
        log = logger.bind(feed_id=feed.id, feed_name=feed.config.name)

        fetch_error: str | None = None
        try:
            parsed = await self._feed_provider.fetch_feed(feed.config.url)
        except (ValidationError, TransientIOError) as exc:
            log.warning("feed_fetch_failed", error=str(exc))
            fetch_error = str(exc)
        except ConfigurationError:
            raise
        except Exception as exc:
            log.exception("feed_fetch_crashed")
            fetch_error = f"{type(exc).__name__}: {exc}"

        if fetch_error is not None:
            await self._persist()
            return ScrapingResult(
                feed_id=feed.id,
                feed_name=feed.config.name,
                success=False,
                processing_time_ms=_elapsed_ms(start),
                error=fetch_error,
            )

        new_items = select_new_items(parsed.items, feed.last_processed_date)
        processed = failed = ingested = 0
        errors: list[str] = []
        for position, item in enumerate(new_items):
            try:
                result = await self._processor.process_item(item, feed.config)
            except (ValidationError, TransientIOError) as exc:
                failed += 1
                errors.append(f"{item.link or item.title}: {exc}")
                log.warning("feed_item_failed", link=item.link, error=str(exc))
            except ConfigurationError:
                raise
            except Exception as exc:
                failed += 1
                errors.append(f"{item.link or item.title}: {type(exc).__name__}: {exc}")
                log.exception("feed_item_crashed", link=item.link)
            else:
                if result.success:
                    processed += 1
                    ingested += 1
                else:
                    failed += 1
                    errors.extend(result.errors)
            if self._item_delay > 0 and position < len(new_items) - 1:
                await asyncio.sleep(self._item_delay)

        feed.last_processed_date = self._advance_watermark(feed.last_processed_date, parsed.items)
        await self._persist()

        result = ScrapingResult(
            feed_id=feed.id,
            feed_name=feed.config.name,
            success=True,
            items_processed=processed,
            items_failed=failed,
            documents_ingested=ingested,
            processing_time_ms=_elapsed_ms(start),
            errors=errors,
        )
        log.info(
            "feed_processed",
            new_items=len(new_items),
            processed=processed,
            failed=failed,
            watermark=feed.last_processed_date.isoformat() if feed.last_processed_date else None,
        )
        return result

    @staticmethod
    def _advance_watermark(current: datetime | None, items: list[FeedItem]) -> datetime | None:
        dates = [_utc(item.pub_date) for item in items if item.pub_date is not None]
        if current is not None:
            dates.append(_utc(current))
        return max(dates) if dates else None

    async def _run_schedule(self, feed_id: str) -> None:
        feed = self._feeds[feed_id]
        schedule = croniter(feed.cron_expression, datetime.now(timezone.utc))
        while True:
            next_run = schedule.get_next(datetime)
            feed.next_run_date = next_run
            delay = (next_run - datetime.now(timezone.utc)).total_seconds()
            await asyncio.sleep(max(delay, 0.0))
            try:
                await self.process_feed(feed_id)
            except NotFoundError:
                return
            except ConfigurationError:
                logger.exception("feed_job_misconfigured", feed_id=feed_id)
                return
            except ComplyxError as exc:
                logger.error("feed_job_failed", feed_id=feed_id, error=str(exc))
            except Exception:
                logger.exception("feed_job_crashed", feed_id=feed_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _cancel_job(self, feed_id: str) -> None:
        job = self._jobs.pop(feed_id, None)
        if job is not None and job is not asyncio.current_task():
            job.cancel()

    async def _persist(self) -> None:
        try:
            await self._state_store.save(list(self._feeds.values()))
        except OSError as exc:
            logger.error("feed_state_save_failed", path=str(self._state_store.path), error=str(exc))


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)
