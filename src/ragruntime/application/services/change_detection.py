from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ragruntime.core.errors import DimensionMismatchError
from ragruntime.core.hashing import compute_text_digest
from ragruntime.domain.models.embedding import ChunkedEmbedding


def hash_text(text: str) -> str:
    return compute_text_digest(text)


def should_regenerate_embedding(
    current_hash: str,
    stored_hash: str | None,
    current_dimensions: int,
    stored_dimensions: int | None,
    current_model: str,
    stored_model: str | None,
) -> bool:
    if not stored_hash or current_hash != stored_hash:
        return True
    if current_dimensions != stored_dimensions:
        return True
    return current_model != stored_model


def validate_embedding_dimensions(
    vector: Sequence[float],
    expected_dimensions: int,
    *,
    model: str | None = None,
) -> None:
    if len(vector) != expected_dimensions:
        raise DimensionMismatchError(expected_dimensions, len(vector), model=model)


def merge_embeddings(
    existing: Mapping[str, ChunkedEmbedding],
    fresh: Iterable[ChunkedEmbedding],
    *,
    current_ids: Iterable[str] | None = None,
) -> dict[str, ChunkedEmbedding]:
    """Overlay ``fresh`` on ``existing`` by chunk id and drop orphaned entries.

    An id survives only if it belongs to the current chunk set, which is
    ``current_ids`` when given and otherwise the ids found in ``fresh``.
    """
    fresh_by_id = {item.chunk.id: item for item in fresh}
    keep = set(current_ids) if current_ids is not None else set(fresh_by_id)
    keep.update(fresh_by_id)

    merged = {chunk_id: item for chunk_id, item in existing.items() if chunk_id in keep}
    merged.update(fresh_by_id)
    return merged
