from __future__ import annotations

from dataclasses import dataclass

from ragruntime.domain.models.chunk import TextChunk


@dataclass(frozen=True, slots=True)
class SearchHit:
    id: str
    score: float
    distance: float
    chunk: TextChunk | None = None
