from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ragruntime.core.errors import ConfigurationError, StoreError, VectorNotFoundError
from ragruntime.domain.models.chunk import TextChunk
from ragruntime.domain.models.search import SearchHit
from ragruntime.domain.protocols import EmbeddingProvider, VectorStore
from ragruntime.infrastructure.vector.distance import distance_to_score, resolve_metric

logger = logging.getLogger(__name__)

# Extra candidates fetched when a score threshold may discard some of them.
MIN_SCORE_OVERFETCH = 3


async def semantic_search(
    query: str | Sequence[float],
    *,
    store: VectorStore,
    provider: EmbeddingProvider | None = None,
    k: int = 10,
    filter: Mapping[str, Any] | None = None,
    min_score: float | None = None,
    distance: str | None = None,
    chunks: Mapping[str, TextChunk] | None = None,
) -> list[SearchHit]:
    """Return up to ``k`` stored items closest to ``query``.

    ``query`` is either text, embedded through ``provider.embed`` as a single
    unit, or a ready vector. Hits carry a similarity score in ``[0, 1]``
    derived from the store's distance metric and are ordered by descending
    score, then ascending id.
    """
    if k <= 0:
        raise ConfigurationError("k must be positive")
    metric = resolve_metric(distance or getattr(store, "distance", None))

    if isinstance(query, str):
        if provider is None:
            raise ConfigurationError("A text query needs an embedding provider")
        vector = list(await provider.embed(query))
    else:
        vector = [float(x) for x in query]

    fetch_k = k * MIN_SCORE_OVERFETCH if min_score is not None else k
    candidates = _query_store(store, vector, fetch_k, filter)
    return _rank(candidates, metric=metric, k=k, min_score=min_score, chunks=chunks)


def find_similar(
    id: str,
    store: VectorStore,
    k: int = 10,
    *,
    filter: Mapping[str, Any] | None = None,
    min_score: float | None = None,
    distance: str | None = None,
    chunks: Mapping[str, TextChunk] | None = None,
) -> list[SearchHit]:
    if k <= 0:
        raise ConfigurationError("k must be positive")
    metric = resolve_metric(distance or getattr(store, "distance", None))

    try:
        vector = store.get(id)
    except StoreError:
        raise
    except Exception as exc:
        raise StoreError(f"Vector lookup failed for {id}: {exc}") from exc
    if vector is None:
        raise VectorNotFoundError(f"No stored vector for id {id!r}")

    fetch_k = (k * MIN_SCORE_OVERFETCH if min_score is not None else k) + 1
    candidates = [row for row in _query_store(store, vector, fetch_k, filter) if row[0] != id]
    return _rank(candidates, metric=metric, k=k, min_score=min_score, chunks=chunks)


def _query_store(
    store: VectorStore,
    vector: list[float],
    k: int,
    filter: Mapping[str, Any] | None,
) -> list[tuple[str, float]]:
    try:
        return list(store.query(vector, k, filter))
    except StoreError:
        raise
    except Exception as exc:
        raise StoreError(f"Vector store query failed: {exc}") from exc


def _rank(
    candidates: list[tuple[str, float]],
    *,
    metric: str,
    k: int,
    min_score: float | None,
    chunks: Mapping[str, TextChunk] | None,
) -> list[SearchHit]:
    hits = []
    for point_id, dist in candidates:
        score = distance_to_score(float(dist), metric)
        if min_score is not None and score < min_score:
            continue
        hits.append(
            SearchHit(
                id=str(point_id),
                score=score,
                distance=float(dist),
                chunk=chunks.get(str(point_id)) if chunks else None,
            )
        )
    hits.sort(key=lambda hit: (-hit.score, hit.id))
    logger.debug("Search kept %d of %d candidates", min(len(hits), k), len(candidates))
    return hits[:k]
