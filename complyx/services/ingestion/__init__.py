"""Document ingestion: chunking, metadata enrichment and the orchestrating service."""

from complyx.services.ingestion.chunker import TextChunker
from complyx.services.ingestion.ingestion_service import IngestionService

__all__ = ["IngestionService", "TextChunker"]
