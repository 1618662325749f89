from __future__ import annotations

import math

import pytest

from ragruntime.core.errors import ConfigurationError, DimensionMismatchError
from ragruntime.infrastructure.vector.distance import (
    compute_distance,
    cosine_similarity,
    distance_to_score,
    dot_product,
    l2_distance,
    normalize_vector,
    pool_vectors,
    resolve_metric,
)


def test_basic_vector_math() -> None:
    assert dot_product([1, 2, 3], [4, 5, 6]) == 32
    assert l2_distance([0, 0], [3, 4]) == 5
    assert normalize_vector([3, 4]) == pytest.approx([0.6, 0.8])
    assert normalize_vector([0, 0]) == [0.0, 0.0]


def test_cosine_similarity_is_rescaled_to_unit_interval() -> None:
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.5)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(0.0)
    assert cosine_similarity([0, 0], [1, 0]) == 0.0


def test_distance_and_score_round_trip_per_metric() -> None:
    a, b = [1.0, 0.0], [0.0, 1.0]

    assert compute_distance(a, b, "cosine") == pytest.approx(1.0)
    assert distance_to_score(1.0, "cosine") == pytest.approx(0.5)
    assert compute_distance(a, b, "euclidean") == pytest.approx(math.sqrt(2))
    assert distance_to_score(math.sqrt(2), "l2") == pytest.approx(1 / (1 + math.sqrt(2)))
    assert compute_distance(a, a, "dot") == pytest.approx(-1.0)
    assert distance_to_score(-1.0, "dot") == pytest.approx(1.0)
    assert distance_to_score(-5.0, "dot") == 1.0
    assert distance_to_score(5.0, "dot") == 0.0


def test_mismatched_lengths_raise() -> None:
    with pytest.raises(DimensionMismatchError):
        dot_product([1, 2], [1, 2, 3])
    with pytest.raises(DimensionMismatchError):
        l2_distance([1], [1, 2])


def test_resolve_metric() -> None:
    assert resolve_metric(None) == "cosine"
    assert resolve_metric(" Euclid ") == "l2"
    assert resolve_metric("ip") == "dot"
    with pytest.raises(ConfigurationError):
        resolve_metric("manhattan")


def test_pool_vectors() -> None:
    vectors = [[1.0, 4.0], [3.0, 2.0]]

    assert pool_vectors(vectors) == [2.0, 3.0]
    assert pool_vectors(vectors, "max") == [3.0, 4.0]
    with pytest.raises(ValueError):
        pool_vectors([])
    with pytest.raises(DimensionMismatchError):
        pool_vectors([[1.0], [1.0, 2.0]])
    with pytest.raises(ConfigurationError):
        pool_vectors(vectors, "median")
