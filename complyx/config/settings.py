"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``PINECONE_API_KEY=...``
  2. A ``.env`` file in the working directory (local development)

Field ``pinecone_api_key`` maps to env var ``PINECONE_API_KEY``.  Defaults
apply when neither source sets a value.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_feed_state_path() -> str:
    return str(Path(tempfile.gettempdir()) / "complyx-scraping" / "feed-state.json")


class Settings(BaseSettings):
    """Complyx knowledge pipeline settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === LLM / Embedding providers ===
    # Empty string = "not configured".
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, etc.)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    embedding_dimension: int = 768
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000

    # === Vector store ===
    vector_db_type: str = "memory"  # memory | pinecone | chromadb
    pinecone_api_key: str = ""
    pinecone_index_name: str = "complyx-knowledge"
    pinecone_cloud: str = "aws"
    pinecone_region: str = "us-east-1"
    pinecone_namespace: str = ""
    pinecone_ready_timeout: float = 120.0
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_host: str = ""  # set to use chromadb.HttpClient instead of local persistence
    chromadb_port: int = 8000
    chromadb_collection: str = "complyx_knowledge"

    # === Ingestion ===
    chunk_size: int = 500
    chunk_overlap: int = 50
    ingestion_batch_delay: float = 0.1
    knowledge_base_version: str = "v1.0.0"

    # === Search / RAG defaults ===
    search_top_k: int = 10
    search_min_score: float = 0.5
    rag_top_k: int = 5
    rag_min_score: float = 0.5

    # === Content fetching ===
    fetch_timeout: float = 30.0
    fetch_max_bytes: int = 50 * 1024 * 1024
    fetch_user_agent: str = "Complyx-Knowledge-Bot/1.0"
    fetch_block_private_hosts: bool = False

    # === Feed scheduler ===
    feed_state_path: str = _default_feed_state_path()
    feed_default_cron: str = "0 */6 * * *"
    feed_item_delay: float = 1.0
    feed_inter_feed_delay: float = 5.0
    feed_chunk_size: int = 1000
    feed_chunk_overlap: int = 200
    feed_scheduler_enabled: bool = True

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
