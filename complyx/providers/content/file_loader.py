"""Local file loader for ``.txt``, ``.md``, ``.html`` and ``.pdf`` sources."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from complyx.interfaces.content_provider import IContentProvider
from complyx.models.documents import FetchedContent
from complyx.providers.content.document_parser import DocumentParser
from complyx.utils.errors import FetchError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_SUFFIX_CONTENT_TYPES: dict[str, str] = {
    ".txt": "text/plain",
    ".md": "text/plain",
    ".markdown": "text/plain",
    ".html": "text/html",
    ".htm": "text/html",
    ".xml": "text/xml",
    ".pdf": "application/pdf",
}

SUPPORTED_SUFFIXES = frozenset(_SUFFIX_CONTENT_TYPES)


class FileLoader(IContentProvider):
    """Reads a document from disk and extracts its text."""

    def __init__(self, parser: DocumentParser | None = None) -> None:
        self._parser = parser or DocumentParser()

    async def fetch(self, location: str) -> FetchedContent:
        path = Path(location)
        content_type = _SUFFIX_CONTENT_TYPES.get(path.suffix.lower())
        if content_type is None:
            raise ValidationError(
                message=(
                    f"Unsupported file type '{path.suffix}'; expected one of "
                    f"{sorted(SUPPORTED_SUFFIXES)}"
                ),
                provider_name=self.get_provider_name(),
            )
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise FetchError(
                message=f"Cannot read {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = self._parser.parse(data, content_type, url=None)
        if not content.title:
            content = content.model_copy(update={"title": path.stem})
        logger.info("file_loaded", path=str(path), size_bytes=len(data))
        return content

    def get_provider_name(self) -> str:
        return "file_loader"
