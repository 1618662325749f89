from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ragruntime.core.errors import DimensionMismatchError
from ragruntime.infrastructure.vector.distance import COSINE, compute_distance, resolve_metric


class InMemoryVectorStore:
    """Brute-force store for tests, prototypes and small corpora."""

    backend_name = "memory"

    def __init__(self, *, distance: str = COSINE) -> None:
        self.distance = resolve_metric(distance)
        self._vectors: dict[str, list[float]] = {}
        self._metadata: dict[str, dict[str, Any]] = {}
        self._dimensions: int | None = None

    def upsert(self, id: str, vector: Sequence[float], metadata: Mapping[str, Any] | None = None) -> None:
        if self._dimensions is None:
            self._dimensions = len(vector)
        elif len(vector) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(vector))
        self._vectors[id] = [float(x) for x in vector]
        self._metadata[id] = dict(metadata or {})

    def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[tuple[str, float]]:
        candidates = [
            (point_id, compute_distance(vector, stored, self.distance))
            for point_id, stored in self._vectors.items()
            if _matches(self._metadata[point_id], filter)
        ]
        candidates.sort(key=lambda row: (row[1], row[0]))
        return candidates[: max(0, k)]

    def get(self, id: str) -> list[float] | None:
        vector = self._vectors.get(id)
        return list(vector) if vector is not None else None

    def get_metadata(self, id: str) -> dict[str, Any] | None:
        metadata = self._metadata.get(id)
        return dict(metadata) if metadata is not None else None

    def delete(self, id: str) -> None:
        self._vectors.pop(id, None)
        self._metadata.pop(id, None)

    def count(self) -> int:
        return len(self._vectors)


def _matches(metadata: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(metadata.get(key) == value for key, value in filter.items())
