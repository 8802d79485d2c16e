"""Abstract base class for syndication-feed readers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from complyx.models.feeds import ParsedFeed


# Concrete implementation: RssFeedProvider (complyx/providers/content/)
class IFeedProvider(ABC):
    """Contract for services that download and parse RSS/Atom feeds."""

    @abstractmethod
    async def fetch_feed(self, url: str) -> ParsedFeed:
        """Download and parse the feed at *url*.

        Raises
        ------
        complyx.utils.errors.ValidationError
            If *url* is not an http(s) URL.
        complyx.utils.errors.FetchError
            If the feed is unreachable or not parseable.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"rss"``."""
