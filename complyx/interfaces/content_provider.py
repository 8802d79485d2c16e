"""Abstract base class for content fetchers.

A content provider turns a location (local path or URL) into normalised
:class:`~complyx.models.documents.FetchedContent` ready for chunking.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from complyx.models.documents import FetchedContent


# Concrete implementations: UrlFetcher, FileLoader (complyx/providers/content/)
class IContentProvider(ABC):
    """Contract for services that fetch and normalise source content."""

    @abstractmethod
    async def fetch(self, location: str) -> FetchedContent:
        """Retrieve *location* and extract its readable text.

        Parameters
        ----------
        location:
            A URL or filesystem path, depending on the implementation.

        Returns
        -------
        FetchedContent
            Extracted text plus title and content type.

        Raises
        ------
        complyx.utils.errors.ValidationError
            If *location* is not acceptable (bad scheme, unsupported type).
        complyx.utils.errors.FetchError
            If retrieval or parsing fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"url_fetcher"``."""
