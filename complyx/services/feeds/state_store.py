"""JSON persistence for the feed registry.

The whole registry is one file: ``{"feeds": [...], "last_updated": ISO}``.
Writes go to a sibling temp file first and are moved into place with
:func:`os.replace`, so a reader never sees a half-written file.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError as PydanticValidationError

from complyx.models.feeds import FeedState, ScheduledFeed

logger = structlog.get_logger(logger_name=__name__)


class FeedStateStore:
    """Loads and saves :class:`FeedState` at *path*."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> FeedState:
        """Read the registry; a missing or unreadable file yields an empty one."""
        return await asyncio.to_thread(self._load_sync)

    async def save(self, feeds: list[ScheduledFeed]) -> FeedState:
        state = FeedState(feeds=feeds, last_updated=datetime.now(timezone.utc))
        await asyncio.to_thread(self._write_sync, state)
        return state

    def _load_sync(self) -> FeedState:
        if not self._path.exists():
            return FeedState()
        try:
            state = FeedState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as exc:
            logger.warning("feed_state_load_failed", path=str(self._path), error=str(exc))
            return FeedState()
        logger.info("feed_state_loaded", path=str(self._path), feeds=len(state.feeds))
        return state

    def _write_sync(self, state: FeedState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(state.model_dump_json(indent=2))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
