"""Application services: ingestion, search, RAG and feed scheduling."""
