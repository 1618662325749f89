from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from itertools import groupby

from ragruntime.core.errors import ConfigurationError
from ragruntime.core.ids import chunk_id
from ragruntime.domain.models.chunk import (
    CHUNKING_STRATEGIES,
    FIXED_LENGTH,
    PARAGRAPH_AWARE,
    ChunkingOptions,
    TextChunk,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

# A sentence owns its terminator and the whitespace after it; "3.14" is not a boundary.
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s+|$)")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def validate_chunking_options(options: ChunkingOptions) -> None:
    if options.strategy not in CHUNKING_STRATEGIES:
        raise ConfigurationError(
            f"Unknown chunking strategy: {options.strategy!r}. "
            f"Supported: {', '.join(CHUNKING_STRATEGIES)}"
        )
    if options.max_chunk_size <= 0:
        raise ConfigurationError("max_chunk_size must be positive")
    if options.overlap_size < 0:
        raise ConfigurationError("overlap_size must not be negative")
    if options.overlap_size >= options.max_chunk_size:
        raise ConfigurationError(
            f"overlap_size ({options.overlap_size}) must be less than "
            f"max_chunk_size ({options.max_chunk_size})"
        )
    if options.min_chunk_size < 0:
        raise ConfigurationError("min_chunk_size must not be negative")


class TextChunker:
    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self.options = options or ChunkingOptions()
        validate_chunking_options(self.options)

    def chunk(self, text: str, *, source_id: str = "source") -> list[TextChunk]:
        if not text or not text.strip():
            return []

        if self.options.strategy == FIXED_LENGTH:
            windows = self._fixed_windows(0, len(text))
        elif self.options.strategy == PARAGRAPH_AWARE:
            windows = self._unit_windows(_unit_spans(text, _PARAGRAPH_BREAK_RE))
        else:
            windows = self._unit_windows(_unit_spans(text, _SENTENCE_END_RE))

        chunks = [
            TextChunk(
                id=chunk_id(source_id, index),
                source_id=source_id,
                text=text[start:end],
                start_offset=start,
                end_offset=end,
                token_estimate=estimate_token_count(text[start:end]),
                index=index,
            )
            for index, (start, end) in enumerate(windows)
        ]
        if self.options.min_chunk_size > 0:
            chunks = merge_small_chunks(
                chunks,
                self.options.min_chunk_size,
                max_chunk_size=self.options.max_chunk_size,
            )
        logger.debug(
            "Chunked source %s into %d chunks (%s, max=%d, overlap=%d)",
            source_id,
            len(chunks),
            self.options.strategy,
            self.options.max_chunk_size,
            self.options.overlap_size,
        )
        return chunks

    def _fixed_windows(self, start: int, end: int) -> list[tuple[int, int]]:
        size = self.options.max_chunk_size
        step = size - self.options.overlap_size
        windows: list[tuple[int, int]] = []
        cursor = start
        while cursor < end:
            window_end = min(cursor + size, end)
            windows.append((cursor, window_end))
            if window_end >= end:
                break
            cursor += step
        return windows

    def _unit_windows(self, units: list[tuple[int, int]]) -> list[tuple[int, int]]:
        max_size = self.options.max_chunk_size
        windows: list[tuple[int, int]] = []
        current: list[tuple[int, int]] = []
        for unit_start, unit_end in units:
            if unit_end - unit_start > max_size:
                if current:
                    windows.append((current[0][0], current[-1][1]))
                    current = []
                windows.extend(self._fixed_windows(unit_start, unit_end))
                continue
            if current and unit_end - current[0][0] > max_size:
                windows.append((current[0][0], current[-1][1]))
                current = self._carry_over(current, unit_end)
            current.append((unit_start, unit_end))
        if current:
            windows.append((current[0][0], current[-1][1]))
        return windows

    def _carry_over(self, flushed: list[tuple[int, int]], next_end: int) -> list[tuple[int, int]]:
        overlap = self.options.overlap_size
        if overlap <= 0:
            return []
        carried: list[tuple[int, int]] = []
        carried_len = 0
        # Never carry the first unit, so every chunk starts after its predecessor.
        for unit_start, unit_end in reversed(flushed[1:]):
            unit_len = unit_end - unit_start
            if carried_len + unit_len > overlap:
                break
            if next_end - unit_start > self.options.max_chunk_size:
                break
            carried.insert(0, (unit_start, unit_end))
            carried_len += unit_len
        return carried


def chunk_text(
    text: str,
    options: ChunkingOptions | None = None,
    *,
    source_id: str = "source",
) -> list[TextChunk]:
    return TextChunker(options).chunk(text, source_id=source_id)


def merge_small_chunks(
    chunks: list[TextChunk],
    min_chunk_size: int,
    *,
    max_chunk_size: int | None = None,
) -> list[TextChunk]:
    """Coalesce chunks shorter than ``min_chunk_size`` into a neighbour.

    A short chunk absorbs the chunk after it; a short trailing chunk is folded
    into its predecessor. Chunks from different sources are never joined, and
    with ``max_chunk_size`` no merge may produce a longer chunk.
    """
    if min_chunk_size < 0:
        raise ConfigurationError("min_chunk_size must not be negative")
    merged: list[TextChunk] = []
    for _, run in groupby(chunks, key=lambda chunk: chunk.source_id):
        merged.extend(_merge_run(list(run), min_chunk_size, max_chunk_size))
    return _renumber(merged)


def reconstruct_text(chunks: list[TextChunk]) -> str:
    """Concatenate chunk texts of one source with their overlaps removed."""
    parts: list[str] = []
    covered = None
    for chunk in chunks:
        if covered is None:
            parts.append(chunk.text)
        else:
            parts.append(chunk.text[max(0, covered - chunk.start_offset):])
        covered = chunk.end_offset if covered is None else max(covered, chunk.end_offset)
    return "".join(parts)


def _unit_spans(text: str, boundary: re.Pattern[str]) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    start = 0
    for match in boundary.finditer(text):
        end = match.end()
        if end <= start:
            continue
        spans.append((start, end))
        start = end
    if start < len(text):
        spans.append((start, len(text)))
    return spans


def _merge_run(chunks: list[TextChunk], min_chunk_size: int, max_chunk_size: int | None) -> list[TextChunk]:
    merged: list[TextChunk] = []
    current = chunks[0]
    for nxt in chunks[1:]:
        if len(current.text) < min_chunk_size and _can_merge(current, nxt, max_chunk_size):
            current = _join(current, nxt)
        else:
            merged.append(current)
            current = nxt
    if merged and len(current.text) < min_chunk_size and _can_merge(merged[-1], current, max_chunk_size):
        current = _join(merged.pop(), current)
    merged.append(current)
    return merged


def _can_merge(left: TextChunk, right: TextChunk, max_chunk_size: int | None) -> bool:
    if left.end_offset < right.start_offset:
        return False
    if max_chunk_size is not None and right.end_offset - left.start_offset > max_chunk_size:
        return False
    return True


def _join(left: TextChunk, right: TextChunk) -> TextChunk:
    text = left.text + right.text[max(0, left.end_offset - right.start_offset):]
    return replace(
        left,
        text=text,
        end_offset=max(left.end_offset, right.end_offset),
        token_estimate=estimate_token_count(text),
    )


def _renumber(chunks: list[TextChunk]) -> list[TextChunk]:
    counters: dict[str, int] = {}
    out: list[TextChunk] = []
    for chunk in chunks:
        index = counters.get(chunk.source_id, 0)
        counters[chunk.source_id] = index + 1
        out.append(replace(chunk, index=index, id=chunk_id(chunk.source_id, index)))
    return out
