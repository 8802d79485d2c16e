"""Vector store provider implementations.

- :class:`MemoryVectorStore` -- in-process reference store, no persistence.
- :class:`PineconeVectorStore` -- managed serverless index (production).
- :class:`ChromaDBVectorStore` -- local persistent or HTTP ChromaDB.

The backend is chosen by ``VECTOR_DB_TYPE`` in ``complyx.main``.
"""

from complyx.providers.vector_store.chromadb_provider import ChromaDBVectorStore
from complyx.providers.vector_store.memory_provider import MemoryVectorStore, cosine_similarity
from complyx.providers.vector_store.pinecone_provider import PineconeVectorStore

__all__ = ["ChromaDBVectorStore", "MemoryVectorStore", "PineconeVectorStore", "cosine_similarity"]
