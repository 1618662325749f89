from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from ragruntime.application.services.change_detection import (
    hash_text,
    merge_embeddings,
    should_regenerate_embedding,
    validate_embedding_dimensions,
)
from ragruntime.application.services.processing_queue import QueueOptions, batch_process
from ragruntime.application.services.rate_limiter import RateLimiter
from ragruntime.core.errors import ConfigurationError, ProviderCallError, RagError
from ragruntime.domain.models.batch import BatchOptions, BatchProcessResult, BatchProgress
from ragruntime.domain.models.chunk import ChunkingOptions, TextChunk
from ragruntime.domain.models.embedding import ChunkedEmbedding, EmbeddingResult, GenerationResult
from ragruntime.domain.protocols import EmbeddingProvider
from ragruntime.infrastructure.progress import rich_progress
from ragruntime.infrastructure.vector.chunking import TextChunker, estimate_token_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _PendingChunk:
    chunk: TextChunk
    content_hash: str


class EmbeddingGenerator:
    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        chunking: ChunkingOptions | None = None,
        batch: BatchOptions | None = None,
        rate_limiter: RateLimiter | None = None,
        preprocess: Callable[[str], str] | None = None,
    ) -> None:
        self.provider = provider
        self.chunker = TextChunker(chunking)
        self.batch = batch or BatchOptions()
        if self.batch.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.batch.concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        if self.batch.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")
        self.rate_limiter = rate_limiter or RateLimiter(self.batch.rate_limit)
        self.preprocess = preprocess

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        await self.rate_limiter.acquire()
        vector = await self._call_provider(self.provider.embed, text)
        return self._build_result(vector, text)

    async def generate_embeddings(
        self,
        source_texts: Mapping[str, str],
        existing: Mapping[str, Sequence[ChunkedEmbedding]] | None = None,
        *,
        on_progress: Callable[[BatchProgress], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        existing = existing or {}
        chunk_sets: dict[str, list[TextChunk]] = {}
        stored_sets: dict[str, dict[str, ChunkedEmbedding]] = {}
        for source_id, raw_text in source_texts.items():
            text = self.preprocess(raw_text) if self.preprocess is not None else raw_text
            # Whitespace-only windows stay in the chunk layout but are never embedded.
            chunk_sets[source_id] = [
                chunk for chunk in self.chunker.chunk(text, source_id=source_id) if chunk.text.strip()
            ]
            stored_sets[source_id] = {item.chunk.id: item for item in existing.get(source_id, ())}

        current_dimensions = None
        has_candidates = any(
            chunk.id in stored_sets[source_id] for source_id, chunks in chunk_sets.items() for chunk in chunks
        )
        if has_candidates:
            current_dimensions = await self._current_dimensions()

        reused: dict[str, ChunkedEmbedding] = {}
        pending: list[_PendingChunk] = []
        for source_id, chunks in chunk_sets.items():
            stored = stored_sets[source_id]
            for chunk in chunks:
                content_hash = hash_text(chunk.text)
                prior = stored.get(chunk.id)
                if prior is not None and self._is_current(prior, content_hash, current_dimensions):
                    reused[chunk.id] = (
                        prior
                        if prior.chunk == chunk
                        else ChunkedEmbedding(chunk=chunk, embedding=prior.embedding, content_hash=content_hash)
                    )
                    logger.debug("Reusing embedding for unchanged chunk %s", chunk.id)
                else:
                    pending.append(_PendingChunk(chunk=chunk, content_hash=content_hash))

        batch_result = await self._embed_pending(pending, on_progress=on_progress, cancel_event=cancel_event)

        fresh_by_id = {item.chunk.id: item for item in batch_result.results}
        embeddings: dict[str, list[ChunkedEmbedding]] = {}
        for source_id, chunks in chunk_sets.items():
            fresh = [fresh_by_id[c.id] for c in chunks if c.id in fresh_by_id]
            fresh.extend(reused[c.id] for c in chunks if c.id in reused)
            merged = merge_embeddings(
                stored_sets[source_id],
                fresh,
                current_ids=[c.id for c in chunks],
            )
            embeddings[source_id] = [merged[c.id] for c in chunks if c.id in merged]

        errors = [replace(err, input=err.input.chunk) for err in batch_result.errors]
        logger.info(
            "Embedded %d sources: %d chunks generated, %d reused, %d failed",
            len(chunk_sets),
            len(batch_result.results),
            len(reused),
            len(errors),
        )
        return GenerationResult(
            embeddings=embeddings,
            errors=errors,
            progress=batch_result.progress,
            reused=len(reused),
            generated=len(batch_result.results),
        )

    async def _embed_pending(
        self,
        pending: list[_PendingChunk],
        *,
        on_progress: Callable[[BatchProgress], None] | None,
        cancel_event: asyncio.Event | None,
    ) -> BatchProcessResult[ChunkedEmbedding]:
        options = QueueOptions(
            concurrency=self.batch.concurrency,
            batch_size=self.batch.batch_size,
            on_progress=on_progress,
            rate_limiter=self.rate_limiter,
            cancel_event=cancel_event,
            max_retries=self.batch.max_retries,
            retry_delay=self.batch.retry_delay,
        )
        if not pending:
            return BatchProcessResult(progress=BatchProgress())
        if not self.batch.show_progress:
            return await batch_process(pending, self._embed_one, options, batch_worker=self._embed_group)
        with rich_progress(len(pending), chained=on_progress) as callback:
            options.on_progress = callback
            return await batch_process(pending, self._embed_one, options, batch_worker=self._embed_group)

    async def _embed_one(self, item: _PendingChunk) -> ChunkedEmbedding:
        vector = await self._call_provider(self.provider.embed, item.chunk.text)
        return ChunkedEmbedding(
            chunk=item.chunk,
            embedding=self._build_result(vector, item.chunk.text),
            content_hash=item.content_hash,
        )

    async def _embed_group(self, items: list[_PendingChunk]) -> list[ChunkedEmbedding]:
        vectors = await self._call_provider(self.provider.embed_batch, [item.chunk.text for item in items])
        if len(vectors) != len(items):
            raise ProviderCallError(f"embed_batch returned {len(vectors)} vectors for {len(items)} texts")
        # A single bad vector fails the whole group, which then falls back to per-item calls.
        return [
            ChunkedEmbedding(
                chunk=item.chunk,
                embedding=self._build_result(vector, item.chunk.text),
                content_hash=item.content_hash,
            )
            for item, vector in zip(items, vectors)
        ]

    async def _call_provider(self, fn: Callable[[Any], Any], arg: Any) -> Any:
        try:
            return await fn(arg)
        except RagError:
            raise
        except Exception as exc:
            raise ProviderCallError(
                f"{self.provider.type} provider call failed (model {self.provider.model}): {exc}"
            ) from exc

    def _build_result(self, vector: Sequence[float], text: str) -> EmbeddingResult:
        expected = self.provider.dimensions
        validate_embedding_dimensions(vector, expected, model=self.provider.model)
        return EmbeddingResult(
            vector=tuple(float(x) for x in vector),
            model=self.provider.model,
            dimensions=expected,
            provider=self.provider.type,
            tokens=estimate_token_count(text),
        )

    async def _current_dimensions(self) -> int:
        # Local providers may load their model to answer this, so keep it off the event loop.
        return await asyncio.to_thread(lambda: self.provider.dimensions)

    def _is_current(self, prior: ChunkedEmbedding, content_hash: str, current_dimensions: int | None) -> bool:
        # Providers that learn their dimensions lazily report 0 until the first call.
        dimensions = current_dimensions or prior.embedding.dimensions
        return not should_regenerate_embedding(
            content_hash,
            prior.content_hash,
            dimensions,
            prior.embedding.dimensions,
            self.provider.model,
            prior.embedding.model,
        )


async def generate_embedding(
    text: str,
    provider: EmbeddingProvider,
    options: BatchOptions | None = None,
    *,
    rate_limiter: RateLimiter | None = None,
) -> EmbeddingResult:
    generator = EmbeddingGenerator(provider, batch=options, rate_limiter=rate_limiter)
    return await generator.generate_embedding(text)


async def generate_embeddings(
    source_texts: Mapping[str, str],
    provider: EmbeddingProvider,
    chunking_options: ChunkingOptions | None = None,
    batch_options: BatchOptions | None = None,
    existing: Mapping[str, Sequence[ChunkedEmbedding]] | None = None,
    *,
    rate_limiter: RateLimiter | None = None,
    preprocess: Callable[[str], str] | None = None,
    on_progress: Callable[[BatchProgress], None] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> GenerationResult:
    generator = EmbeddingGenerator(
        provider,
        chunking=chunking_options,
        batch=batch_options,
        rate_limiter=rate_limiter,
        preprocess=preprocess,
    )
    return await generator.generate_embeddings(
        source_texts,
        existing,
        on_progress=on_progress,
        cancel_event=cancel_event,
    )
