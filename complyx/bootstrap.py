"""Component wiring shared by the web app and the CLI.

:func:`build_components` constructs every provider and service from
:class:`Settings` and returns them as a flat dict (stored on ``app.state``
by the web app).  :func:`close_components` releases network resources.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from complyx.config.settings import Settings
from complyx.interfaces.vector_store_provider import IVectorStoreProvider
from complyx.providers.content.file_loader import FileLoader
from complyx.providers.content.rss_provider import RssFeedProvider
from complyx.providers.content.url_fetcher import UrlFetcher
from complyx.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from complyx.providers.llm.openai_provider import OpenAILLMProvider
from complyx.providers.vector_store.memory_provider import MemoryVectorStore
from complyx.services.advanced_rag import AdvancedRAG
from complyx.services.embedding_service import EmbeddingService
from complyx.services.feeds.feed_processor import FeedProcessor
from complyx.services.feeds.scheduler import FeedScheduler
from complyx.services.feeds.state_store import FeedStateStore
from complyx.services.ingestion.ingestion_service import IngestionService
from complyx.services.rag_service import RAGService
from complyx.services.search_service import SearchService
from complyx.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

VECTOR_DB_TYPES = ("memory", "pinecone", "chromadb")


def build_vector_store(settings: Settings) -> IVectorStoreProvider:
    """Select the vector store named by ``VECTOR_DB_TYPE``.

    The Pinecone and ChromaDB adapters are imported only when selected.
    """
    db_type = settings.vector_db_type.lower()
    if db_type == "memory":
        return MemoryVectorStore(dimension=settings.embedding_dimension)
    if db_type == "pinecone":
        from complyx.providers.vector_store.pinecone_provider import PineconeVectorStore

        return PineconeVectorStore(
            api_key=settings.pinecone_api_key,
            index_name=settings.pinecone_index_name,
            dimension=settings.embedding_dimension,
            cloud=settings.pinecone_cloud,
            region=settings.pinecone_region,
            namespace=settings.pinecone_namespace,
            ready_timeout=settings.pinecone_ready_timeout,
        )
    if db_type == "chromadb":
        from complyx.providers.vector_store.chromadb_provider import ChromaDBVectorStore

        return ChromaDBVectorStore(
            dimension=settings.embedding_dimension,
            persist_directory=settings.chromadb_persist_dir,
            collection_name=settings.chromadb_collection,
            host=settings.chromadb_host,
            port=settings.chromadb_port,
        )
    raise ConfigurationError(
        message=f"Unknown VECTOR_DB_TYPE '{settings.vector_db_type}'; expected one of {VECTOR_DB_TYPES}"
    )


def build_components(settings: Settings) -> dict[str, Any]:
    """Construct every provider and service for the application."""
    # -- Shared resources --
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.fetch_timeout),
        headers={"User-Agent": settings.fetch_user_agent},
        follow_redirects=True,
    )

    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=settings)
    llm_provider = OpenAILLMProvider(settings=settings)
    vector_store = build_vector_store(settings)
    url_fetcher = UrlFetcher(
        http_client=http_client,
        timeout=settings.fetch_timeout,
        max_bytes=settings.fetch_max_bytes,
        block_private_hosts=settings.fetch_block_private_hosts,
        user_agent=settings.fetch_user_agent,
    )
    feed_provider = RssFeedProvider(
        http_client=http_client,
        timeout=settings.fetch_timeout,
        user_agent=settings.fetch_user_agent,
    )

    # -- Services --
    embedding_service = EmbeddingService(
        embedding_provider,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
    )
    ingestion_service = IngestionService(
        embedding_service,
        vector_store,
        url_fetcher=url_fetcher,
        file_loader=FileLoader(),
        knowledge_base_version=settings.knowledge_base_version,
        batch_delay=settings.ingestion_batch_delay,
    )
    search_service = SearchService(
        embedding_service,
        vector_store,
        default_top_k=settings.search_top_k,
        default_min_score=settings.search_min_score,
    )
    rag_service = RAGService(
        search_service,
        llm_provider,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    feed_scheduler = FeedScheduler(
        feed_provider,
        FeedProcessor(
            ingestion_service,
            url_fetcher=url_fetcher,
            knowledge_base_version=settings.knowledge_base_version,
            chunk_size=settings.feed_chunk_size,
            chunk_overlap=settings.feed_chunk_overlap,
        ),
        FeedStateStore(settings.feed_state_path),
        default_cron=settings.feed_default_cron,
        item_delay=settings.feed_item_delay,
        inter_feed_delay=settings.feed_inter_feed_delay,
    )

    provider_registry = {
        "embedding": embedding_provider.is_available(),
        "llm": llm_provider.is_available(),
        "vector_store": vector_store.get_provider_name(),
    }
    logger.info("components_built", **provider_registry)

    return {
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "vector_store": vector_store,
        "url_fetcher": url_fetcher,
        "feed_provider": feed_provider,
        "embedding_service": embedding_service,
        "ingestion_service": ingestion_service,
        "search_service": search_service,
        "rag_service": rag_service,
        "advanced_rag": AdvancedRAG(search_service),
        "feed_scheduler": feed_scheduler,
        "provider_registry": provider_registry,
    }


async def close_components(components: dict[str, Any]) -> None:
    scheduler: FeedScheduler = components["feed_scheduler"]
    if scheduler.is_running:
        await scheduler.stop()
    await components["vector_store"].disconnect()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
