from __future__ import annotations

from dataclasses import dataclass

FIXED_LENGTH = "fixed-length"
SENTENCE_AWARE = "sentence-aware"
PARAGRAPH_AWARE = "paragraph-aware"

CHUNKING_STRATEGIES = (FIXED_LENGTH, SENTENCE_AWARE, PARAGRAPH_AWARE)


@dataclass(frozen=True, slots=True)
class TextChunk:
    id: str
    source_id: str
    text: str
    start_offset: int
    end_offset: int
    token_estimate: int
    index: int

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset


@dataclass(frozen=True, slots=True)
class ChunkingOptions:
    strategy: str = SENTENCE_AWARE
    max_chunk_size: int = 1000
    overlap_size: int = 0
    min_chunk_size: int = 0
