from __future__ import annotations

import math
from collections.abc import Sequence

from ragruntime.core.errors import ConfigurationError, DimensionMismatchError

COSINE = "cosine"
L2 = "l2"
DOT = "dot"

DISTANCE_METRICS = (COSINE, L2, DOT)


def resolve_metric(metric: str | None) -> str:
    normalized = (metric or COSINE).strip().lower()
    aliases = {"euclid": L2, "euclidean": L2, "inner_product": DOT, "ip": DOT}
    normalized = aliases.get(normalized, normalized)
    if normalized not in DISTANCE_METRICS:
        raise ConfigurationError(
            f"Unknown distance metric: {metric!r}. Supported: {', '.join(DISTANCE_METRICS)}"
        )
    return normalized


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    _check_same_length(a, b)
    return sum(float(x) * float(y) for x, y in zip(a, b))


def l2_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_same_length(a, b)
    return math.sqrt(sum((float(x) - float(y)) ** 2 for x, y in zip(a, b)))


def normalize_vector(vector: Sequence[float]) -> list[float]:
    magnitude = math.sqrt(sum(float(x) * float(x) for x in vector))
    if magnitude == 0:
        return [float(x) for x in vector]
    return [float(x) / magnitude for x in vector]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity rescaled from [-1, 1] to [0, 1]."""
    dot = dot_product(a, b)
    magnitude_a = math.sqrt(dot_product(a, a))
    magnitude_b = math.sqrt(dot_product(b, b))
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return (dot / (magnitude_a * magnitude_b) + 1) / 2


def compute_distance(a: Sequence[float], b: Sequence[float], metric: str = COSINE) -> float:
    """Native distance for ``metric``; lower always means more similar.

    Cosine distance is ``1 - cos`` in ``[0, 2]`` and dot distance is the
    negative inner product.
    """
    metric = resolve_metric(metric)
    if metric == L2:
        return l2_distance(a, b)
    if metric == DOT:
        return -dot_product(a, b)
    return 2 * (1 - cosine_similarity(a, b))


def distance_to_score(distance: float, metric: str = COSINE) -> float:
    metric = resolve_metric(metric)
    if metric == L2:
        return 1.0 / (1.0 + max(0.0, distance))
    if metric == DOT:
        return min(1.0, max(0.0, (1.0 - distance) / 2))
    return min(1.0, max(0.0, 1.0 - distance / 2))


def pool_vectors(vectors: Sequence[Sequence[float]], method: str = "average") -> list[float]:
    """Combine several chunk vectors into one document vector."""
    if not vectors:
        raise ValueError("Cannot pool an empty list of vectors")
    dims = len(vectors[0])
    for vector in vectors:
        if len(vector) != dims:
            raise DimensionMismatchError(dims, len(vector))
    if method == "average":
        return [sum(float(v[i]) for v in vectors) / len(vectors) for i in range(dims)]
    if method == "max":
        return [max(float(v[i]) for v in vectors) for i in range(dims)]
    raise ConfigurationError(f"Unknown pooling method: {method!r}")


def _check_same_length(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
