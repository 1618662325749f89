from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ragruntime.core.time import now_utc_iso
from ragruntime.domain.models.chunk import TextChunk
from ragruntime.domain.models.embedding import ChunkedEmbedding
from ragruntime.domain.protocols import VectorStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StoreSyncSummary:
    upserted: int
    deleted: int


def store_embeddings(
    store: VectorStore,
    embeddings: Mapping[str, Sequence[ChunkedEmbedding]],
    *,
    previous: Mapping[str, Sequence[ChunkedEmbedding]] | None = None,
) -> StoreSyncSummary:
    """Write chunk embeddings to ``store`` and delete chunks that disappeared.

    A chunk id is deleted when it was part of ``previous`` for a source that is
    present in ``embeddings`` but is no longer among that source's chunks.
    """
    indexed_at = now_utc_iso()
    upserted = 0
    deleted = 0
    for source_id, items in embeddings.items():
        for item in items:
            store.upsert(
                item.chunk.id,
                list(item.embedding.vector),
                {
                    "source_id": source_id,
                    "index": item.chunk.index,
                    "start_offset": item.chunk.start_offset,
                    "end_offset": item.chunk.end_offset,
                    "token_estimate": item.chunk.token_estimate,
                    "content_hash": item.content_hash,
                    "embedding_model": item.embedding.model,
                    "text_content": item.chunk.text,
                    "indexed_at": indexed_at,
                },
            )
            upserted += 1

        current_ids = {item.chunk.id for item in items}
        for old in (previous or {}).get(source_id, ()):
            if old.chunk.id not in current_ids:
                store.delete(old.chunk.id)
                deleted += 1

    logger.info("Stored %d chunk embeddings, removed %d orphans", upserted, deleted)
    return StoreSyncSummary(upserted=upserted, deleted=deleted)


def chunks_by_id(embeddings: Mapping[str, Sequence[ChunkedEmbedding]]) -> dict[str, TextChunk]:
    return {item.chunk.id: item.chunk for items in embeddings.values() for item in items}
