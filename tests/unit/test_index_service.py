from __future__ import annotations

import pytest

from ragruntime.application.services.embedding_service import generate_embeddings
from ragruntime.application.services.index_service import chunks_by_id, store_embeddings
from ragruntime.application.services.search_service import semantic_search
from ragruntime.domain.models.chunk import SENTENCE_AWARE, ChunkingOptions
from ragruntime.infrastructure.vector.memory_store import InMemoryVectorStore

SENTENCES = ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=12)


class _FakeProvider:
    type = "fake"
    model = "fake-model"
    dimensions = 3

    async def embed(self, text: str) -> list[float]:
        return [float(len(text)), float(text.count("a")), 1.0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


@pytest.mark.asyncio
async def test_store_embeddings_writes_metadata_and_removes_orphans() -> None:
    provider = _FakeProvider()
    store = InMemoryVectorStore()
    first = await generate_embeddings({"doc": "Alpha one. Beta two. Gamma three."}, provider, SENTENCES)

    summary = store_embeddings(store, first.embeddings)

    assert summary.upserted == 3
    assert summary.deleted == 0
    metadata = store.get_metadata("doc:chunk:1")
    assert metadata is not None
    assert metadata["source_id"] == "doc"
    assert metadata["text_content"] == "Beta two. "
    assert metadata["embedding_model"] == "fake-model"
    assert metadata["content_hash"] == first.embeddings["doc"][1].content_hash
    assert metadata["indexed_at"].endswith("+00:00")

    second = await generate_embeddings(
        {"doc": "Alpha one. "}, provider, SENTENCES, existing=first.embeddings
    )
    summary = store_embeddings(store, second.embeddings, previous=first.embeddings)

    assert summary.upserted == 1
    assert summary.deleted == 2
    assert store.count() == 1


@pytest.mark.asyncio
async def test_indexed_chunks_are_searchable() -> None:
    provider = _FakeProvider()
    store = InMemoryVectorStore()
    result = await generate_embeddings({"doc": "Alpha one. Beta two. Gamma three."}, provider, SENTENCES)
    store_embeddings(store, result.embeddings)

    hits = await semantic_search(
        "Beta two. ",
        store=store,
        provider=provider,
        k=1,
        chunks=chunks_by_id(result.embeddings),
    )

    assert hits[0].id == "doc:chunk:1"
    assert hits[0].chunk is not None
    assert hits[0].chunk.text == "Beta two. "
