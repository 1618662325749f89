from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any

from ragruntime.core.errors import ProviderCallError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_LOCAL_MODEL
    device: str = "auto"
    batch_size: int = 128
    normalize: bool = True
    cpu_threads: int | None = 8


class SentenceTransformerProvider:
    """Local embedding provider on top of ``sentence-transformers``.

    The model is loaded on first use. ``encode`` blocks, so the async methods
    hand it to a worker thread; a lock keeps concurrent first calls from
    loading the model twice.
    """

    type = "sentence-transformers"

    def __init__(self, config: EmbeddingConfig | None = None, *, encoder: Any | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._encoder = encoder
        self._load_lock = threading.Lock()
        self._dimensions: int | None = None
        if encoder is not None:
            self._dimensions = _encoder_dimensions(encoder)

    @property
    def model(self) -> str:
        return self.config.model_name

    @property
    def dimensions(self) -> int:
        if self._dimensions is None:
            self._ensure_encoder()
        if self._dimensions is None:
            raise RuntimeError(f"Unable to determine embedding dimension for {self.model}.")
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        [vector] = await self.embed_batch([text])
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if any(not text or not text.strip() for text in texts):
            raise ProviderCallError("Cannot generate embeddings for empty text")
        return await asyncio.to_thread(self.encode, texts)

    def encode(self, texts: list[str]) -> list[list[float]]:
        encoder = self._ensure_encoder()
        try:
            raw = encoder.encode(
                texts,
                batch_size=max(1, self.config.batch_size),
                normalize_embeddings=self.config.normalize,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as exc:
            raise ProviderCallError(f"Local embedding failed (model {self.model}): {exc}") from exc

        rows = raw.tolist() if hasattr(raw, "tolist") else [list(row) for row in raw]
        if rows and self._dimensions is None:
            self._dimensions = len(rows[0])
        return [[float(x) for x in row] for row in rows]

    def _ensure_encoder(self) -> Any:
        with self._load_lock:
            if self._encoder is None:
                self._encoder = self._load_encoder()
                self._dimensions = _encoder_dimensions(self._encoder) or self._dimensions
            return self._encoder

    def _load_encoder(self) -> Any:
        try:
            import torch
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError(
                "Local embedding dependencies are missing. Install with "
                "`pip install -e '.[vector]'`."
            ) from exc

        if self.config.cpu_threads and "OMP_NUM_THREADS" not in os.environ:
            os.environ["OMP_NUM_THREADS"] = str(self.config.cpu_threads)

        device = self._resolve_device(torch)
        logger.info("Loading embedding model %s on %s", self.model, device)
        return SentenceTransformer(self.model, device=device)

    def _resolve_device(self, torch_module) -> str:
        configured = (self.config.device or "auto").strip().lower()
        if configured != "auto":
            return configured
        mps = getattr(torch_module.backends, "mps", None)
        if mps is not None and mps.is_available():
            return "mps"
        if torch_module.cuda.is_available():
            return "cuda"
        return "cpu"


def _encoder_dimensions(encoder: Any) -> int | None:
    getter = getattr(encoder, "get_sentence_embedding_dimension", None)
    dim = getter() if callable(getter) else None
    return int(dim) if dim else None
