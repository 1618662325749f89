from __future__ import annotations

from dataclasses import dataclass, field

from ragruntime.domain.models.batch import BatchError, BatchProgress
from ragruntime.domain.models.chunk import TextChunk


@dataclass(frozen=True, slots=True)
class EmbeddingResult:
    vector: tuple[float, ...]
    model: str
    dimensions: int
    provider: str | None = None
    tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ChunkedEmbedding:
    chunk: TextChunk
    embedding: EmbeddingResult
    content_hash: str


@dataclass(slots=True)
class GenerationResult:
    """Outcome of one ``generate_embeddings`` run.

    ``embeddings`` maps each source id to its chunk embeddings in chunk order.
    ``reused`` counts chunks whose stored embedding was still current and
    ``generated`` counts chunks embedded by the provider during this run.
    """

    embeddings: dict[str, list[ChunkedEmbedding]]
    errors: list[BatchError] = field(default_factory=list)
    progress: BatchProgress = field(default_factory=BatchProgress)
    reused: int = 0
    generated: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors
