"""Fixed-window character chunking with overlap.

Splits a document's text into windows of ``chunk_size`` characters, each
starting ``chunk_size - overlap`` characters after the previous one.  The
last window may be shorter.  Consecutive windows share ``overlap``
characters so a fact spanning a boundary is still whole in at least one
chunk.

Sizes are measured in characters, not tokens, so chunk boundaries are
deterministic and independent of the embedding model's tokenizer.
"""

from __future__ import annotations

import structlog

from complyx.models.documents import Chunk
from complyx.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}-chunk-{chunk_index}"


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window length in characters (default 500).
    overlap:
        Characters shared by consecutive windows (default 50).  Must be
        smaller than *chunk_size*, otherwise the window never advances.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 50) -> None:
        validate_chunking(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, document_id: str, text: str) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects for *document_id*.

        Blank or whitespace-only text yields an empty list.
        """
        if not text or not text.strip():
            return []

        step = self._chunk_size - self._overlap
        length = len(text)
        chunks: list[Chunk] = []
        start = 0
        while start < length:
            end = min(start + self._chunk_size, length)
            index = len(chunks)
            chunks.append(
                Chunk(
                    id=make_chunk_id(document_id, index),
                    document_id=document_id,
                    text=text[start:end],
                    chunk_index=index,
                    start=start,
                    end=end,
                )
            )
            if end == length:
                break
            start += step

        logger.debug(
            "document_chunked",
            document_id=document_id,
            text_length=length,
            chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks


def validate_chunking(chunk_size: int, overlap: int) -> None:
    """Raise :class:`ConfigurationError` for sizes that cannot make progress."""
    if chunk_size <= 0:
        raise ConfigurationError(message=f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ConfigurationError(message=f"chunk_overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ConfigurationError(
            message=f"chunk_overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )
