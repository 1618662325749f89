from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from ragruntime.domain.models.batch import BatchOptions
from ragruntime.domain.models.chunk import ChunkingOptions

DEFAULT_RAG_DIRNAME = ".rag"


@dataclass(frozen=True)
class RagSettings:
    embedding_provider: str = "sentence-transformers"
    embedding_model: str | None = None
    embedding_device: str = "auto"
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: str | None = field(default=None, repr=False)
    openai_base_url: str | None = None
    rate_limit: int = 100
    batch_size: int = 10
    concurrency: int = 4
    max_retries: int = 2
    show_progress: bool = False
    chunk_strategy: str = "sentence-aware"
    max_chunk_size: int = 1000
    overlap_size: int = 0
    min_chunk_size: int = 0
    distance: str = "cosine"
    qdrant_url: str | None = None
    qdrant_collection: str = "rag_chunks"
    qdrant_path: Path | None = None

    def batch_options(self) -> BatchOptions:
        return BatchOptions(
            batch_size=self.batch_size,
            rate_limit=self.rate_limit,
            show_progress=self.show_progress,
            concurrency=self.concurrency,
            max_retries=self.max_retries,
        )

    def chunking_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            strategy=self.chunk_strategy,
            max_chunk_size=self.max_chunk_size,
            overlap_size=self.overlap_size,
            min_chunk_size=self.min_chunk_size,
        )


def load_settings(project_root: Path | None = None) -> RagSettings:
    root = (project_root or Path.cwd()).expanduser().resolve()

    qdrant_path_raw = os.getenv("RAG_QDRANT_PATH")
    if qdrant_path_raw:
        qdrant_path = Path(qdrant_path_raw).expanduser().resolve()
    else:
        qdrant_path = root / DEFAULT_RAG_DIRNAME / "qdrant"

    return RagSettings(
        embedding_provider=_read_str_env("RAG_EMBEDDING_PROVIDER", "sentence-transformers").lower(),
        embedding_model=os.getenv("RAG_EMBEDDING_MODEL") or None,
        embedding_device=_read_str_env("RAG_EMBEDDING_DEVICE", "auto"),
        ollama_base_url=_read_str_env("RAG_OLLAMA_BASE_URL", "http://localhost:11434"),
        openai_api_key=os.getenv("RAG_OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("RAG_OPENAI_BASE_URL") or None,
        rate_limit=_read_positive_int_env("RAG_RATE_LIMIT", 100),
        batch_size=_read_positive_int_env("RAG_BATCH_SIZE", 10),
        concurrency=_read_positive_int_env("RAG_CONCURRENCY", 4),
        max_retries=_read_non_negative_int_env("RAG_MAX_RETRIES", 2),
        show_progress=_read_bool_env("RAG_SHOW_PROGRESS", False),
        chunk_strategy=_read_str_env("RAG_CHUNK_STRATEGY", "sentence-aware"),
        max_chunk_size=_read_positive_int_env("RAG_MAX_CHUNK_SIZE", 1000),
        overlap_size=_read_non_negative_int_env("RAG_OVERLAP_SIZE", 0),
        min_chunk_size=_read_non_negative_int_env("RAG_MIN_CHUNK_SIZE", 0),
        distance=_read_str_env("RAG_DISTANCE", "cosine").lower(),
        qdrant_url=os.getenv("RAG_QDRANT_URL") or None,
        qdrant_collection=_read_str_env("RAG_QDRANT_COLLECTION", "rag_chunks"),
        qdrant_path=qdrant_path,
    )


def _read_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _read_positive_int_env(name: str, default: int) -> int:
    value = _read_int_env(name, default)
    return value if value > 0 else default


def _read_non_negative_int_env(name: str, default: int) -> int:
    value = _read_int_env(name, default)
    return value if value >= 0 else default


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default
