from __future__ import annotations

import logging
from typing import Any

from ragruntime.core.errors import ProviderCallError

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"


class OllamaProvider:
    """Embedding provider backed by a local Ollama server.

    ``dimensions`` is learned from the first response unless configured up
    front; until then it reads as 0.
    """

    type = "ollama"

    def __init__(
        self,
        *,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_URL,
        dimensions: int | None = None,
        timeout_seconds: float | None = 60.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._dimensions = dimensions
        self._client = client

    @property
    def dimensions(self) -> int:
        return self._dimensions or 0

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderCallError("Cannot generate embedding for empty text")
        vectors = await self._request([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if any(not text or not text.strip() for text in texts):
            raise ProviderCallError("Cannot generate embeddings for empty text")
        return await self._request(texts)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        client = self._get_client()
        try:
            response = await client.embed(model=self.model, input=texts)
        except Exception as exc:
            raise ProviderCallError(
                f"Ollama embedding generation failed at {self.base_url} (model '{self.model}'): {exc}"
            ) from exc

        vectors = [[float(x) for x in row] for row in response["embeddings"]]
        if len(vectors) != len(texts):
            raise ProviderCallError(
                f"Ollama returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        if self._dimensions is None and vectors:
            self._dimensions = len(vectors[0])
            logger.info("Ollama model %s produces %d-dimensional vectors", self.model, self._dimensions)
        return vectors

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            from ollama import AsyncClient
        except ImportError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError(
                "Ollama dependency is missing. Install with `pip install -e '.[ollama]'`."
            ) from exc
        self._client = AsyncClient(host=self.base_url, timeout=self.timeout_seconds)
        return self._client
