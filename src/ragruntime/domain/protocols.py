from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol


class EmbeddingProvider(Protocol):
    type: str
    model: str
    dimensions: int

    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


class VectorStore(Protocol):
    distance: str

    def upsert(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any] | None = None) -> None: ...

    def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[str, float]]: ...

    def get(self, id: str) -> list[float] | None: ...

    def delete(self, id: str) -> None: ...
