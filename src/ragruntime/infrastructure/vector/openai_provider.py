from __future__ import annotations

import logging
from typing import Any

from ragruntime.core.errors import ProviderCallError

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "text-embedding-3-small"

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIProvider:
    """Embedding provider backed by the OpenAI embeddings API.

    Known models report their dimensions up front; other models fall back to
    1536 unless ``dimensions`` is given. The API key falls back to the
    ``OPENAI_API_KEY`` environment variable read by the client itself.
    """

    type = "openai"

    def __init__(
        self,
        *,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: str | None = None,
        organization: str | None = None,
        base_url: str | None = None,
        dimensions: int | None = None,
        timeout_seconds: float | None = 60.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.api_key = api_key
        self.organization = organization
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._client = client

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
            response = await client.embeddings.create(
                model=self.model,
                input=texts,
                encoding_format="float",
            )
        except Exception as exc:
            raise ProviderCallError(f"OpenAI embedding generation failed (model '{self.model}'): {exc}") from exc

        # The API tags each vector with the position of its input.
        rows = sorted(response.data, key=lambda item: item.index)
        if len(rows) != len(texts):
            raise ProviderCallError(f"OpenAI returned {len(rows)} embeddings for {len(texts)} inputs")
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug("OpenAI embedded %d texts using %s tokens", len(texts), getattr(usage, "total_tokens", "?"))
        return [[float(x) for x in row.embedding] for row in rows]

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError(
                "OpenAI dependency is missing. Install with `pip install -e '.[openai]'`."
            ) from exc
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            organization=self.organization,
            base_url=self.base_url,
            timeout=self.timeout_seconds,
        )
        return self._client
