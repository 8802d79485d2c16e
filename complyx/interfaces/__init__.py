"""Abstract provider contracts (adapter pattern)."""

from complyx.interfaces.content_provider import IContentProvider
from complyx.interfaces.embedding_provider import IEmbeddingProvider
from complyx.interfaces.feed_provider import IFeedProvider
from complyx.interfaces.llm_provider import ILLMProvider
from complyx.interfaces.vector_store_provider import MAX_BATCH_SIZE, IVectorStoreProvider

__all__ = [
    "IContentProvider",
    "IEmbeddingProvider",
    "IFeedProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
    "MAX_BATCH_SIZE",
]
