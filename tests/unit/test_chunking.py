from __future__ import annotations

import pytest

from ragruntime.core.errors import ConfigurationError
from ragruntime.domain.models.chunk import (
    FIXED_LENGTH,
    PARAGRAPH_AWARE,
    SENTENCE_AWARE,
    ChunkingOptions,
)
from ragruntime.infrastructure.vector.chunking import (
    chunk_text,
    estimate_token_count,
    merge_small_chunks,
    reconstruct_text,
)

SAMPLE = (
    "The ledger was reconciled in March. Cash at bank increased! Was revenue stable? "
    "Liquidity remained strong through the year.\n\n"
    "A second paragraph follows here. It has two sentences.\n\n"
    "Final words."
)


def test_sentence_scenario_yields_three_increasing_chunks() -> None:
    chunks = chunk_text(
        "Sentence one. Sentence two. Sentence three.",
        ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=20),
    )

    assert [c.text for c in chunks] == ["Sentence one. ", "Sentence two. ", "Sentence three."]
    assert all(len(c.text) <= 20 for c in chunks)
    starts = [c.start_offset for c in chunks]
    assert starts == sorted(set(starts))
    assert [c.index for c in chunks] == [0, 1, 2]
    assert chunks[1].id == "source:chunk:1"


@pytest.mark.parametrize("strategy", [FIXED_LENGTH, SENTENCE_AWARE, PARAGRAPH_AWARE])
@pytest.mark.parametrize("overlap", [0, 10])
def test_chunks_reconstruct_source_text(strategy: str, overlap: int) -> None:
    options = ChunkingOptions(strategy=strategy, max_chunk_size=60, overlap_size=overlap)
    chunks = chunk_text(SAMPLE, options, source_id="doc")

    assert reconstruct_text(chunks) == SAMPLE
    for chunk in chunks:
        assert chunk.text == SAMPLE[chunk.start_offset : chunk.end_offset]
        assert len(chunk.text) <= 60
        assert chunk.source_id == "doc"
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start_offset > prev.start_offset


def test_fixed_length_overlap_is_exact() -> None:
    text = "abcdefghijklmnopqrstuvwxyz"
    chunks = chunk_text(text, ChunkingOptions(strategy=FIXED_LENGTH, max_chunk_size=10, overlap_size=3))

    assert [(c.start_offset, c.end_offset) for c in chunks] == [(0, 10), (7, 17), (14, 24), (21, 26)]
    assert chunks[-1].end_offset == len(text)
    assert chunks[0].text[-3:] == chunks[1].text[:3]


def test_paragraph_strategy_keeps_paragraphs_whole() -> None:
    text = "First paragraph here.\n\nSecond paragraph here.\n\nThird."
    chunks = chunk_text(text, ChunkingOptions(strategy=PARAGRAPH_AWARE, max_chunk_size=25))

    assert [c.text for c in chunks] == [
        "First paragraph here.\n\n",
        "Second paragraph here.\n\n",
        "Third.",
    ]


def test_oversized_sentence_is_hard_split() -> None:
    text = "x" * 25 + ". Short."
    chunks = chunk_text(text, ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=10))

    assert all(len(c.text) <= 10 for c in chunks)
    assert reconstruct_text(chunks) == text


def test_sentence_overlap_carries_trailing_sentences() -> None:
    text = "One. Two. Three. Four."
    chunks = chunk_text(text, ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=12, overlap_size=6))

    assert chunks[0].text == "One. Two. "
    assert chunks[1].text.startswith("Two. ")
    assert reconstruct_text(chunks) == text


def test_blank_text_yields_no_chunks() -> None:
    assert chunk_text("") == []
    assert chunk_text("   \n\t ") == []


@pytest.mark.parametrize(
    "options",
    [
        ChunkingOptions(max_chunk_size=0),
        ChunkingOptions(max_chunk_size=10, overlap_size=10),
        ChunkingOptions(max_chunk_size=10, overlap_size=-1),
        ChunkingOptions(min_chunk_size=-1),
        ChunkingOptions(strategy="semantic"),
    ],
)
def test_invalid_options_raise_before_chunking(options: ChunkingOptions) -> None:
    with pytest.raises(ConfigurationError):
        chunk_text("Some text.", options)


def test_min_chunk_size_merges_short_chunks() -> None:
    text = "xxxxxxxxxxxx. Hi."
    plain = chunk_text(text, ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=10))
    merged = chunk_text(text, ChunkingOptions(strategy=SENTENCE_AWARE, max_chunk_size=10, min_chunk_size=5))

    assert [c.text for c in plain] == ["xxxxxxxxxx", "xx. ", "Hi."]
    assert [c.text for c in merged] == ["xxxxxxxxxx", "xx. Hi."]
    assert [c.id for c in merged] == ["source:chunk:0", "source:chunk:1"]
    assert merged[1].start_offset == 10
    assert merged[1].end_offset == len(text)


def test_merge_small_chunks_respects_sources_and_trailing_chunk() -> None:
    fixed = ChunkingOptions(strategy=FIXED_LENGTH, max_chunk_size=10)
    a = chunk_text("Alpha beta gamma delta.", fixed, source_id="a")
    b = chunk_text("Tiny.", fixed, source_id="b")

    merged = merge_small_chunks(a + b, 5)

    assert [c.source_id for c in merged] == ["a", "a", "b"]
    assert merged[1].text == " gamma delta."
    assert merged[1].end_offset == 23
    assert merged[1].id == "a:chunk:1"
    assert merged[2].text == "Tiny."
    assert merged[2].id == "b:chunk:0"


def test_merge_small_chunks_honours_max_size() -> None:
    fixed = ChunkingOptions(strategy=FIXED_LENGTH, max_chunk_size=10)
    chunks = chunk_text("Alpha beta gamma delta.", fixed)

    assert merge_small_chunks(chunks, 5, max_chunk_size=10) == chunks
    with pytest.raises(ConfigurationError):
        merge_small_chunks(chunks, -1)


def test_estimate_token_count_rounds_up() -> None:
    assert estimate_token_count("") == 0
    assert estimate_token_count("abcd") == 1
    assert estimate_token_count("abcde") == 2
