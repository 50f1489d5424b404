"""Tests for chunker."""

import pytest

from memory_cache.ingest.chunker import chunk_conversation, chunk_turn, reconstruct


def _long_text(words: int = 120) -> str:
    return " ".join(f"word{i}" for i in range(words))


def test_empty_text_yields_nothing() -> None:
    assert list(chunk_turn("", "user")) == []


def test_short_text_is_single_chunk() -> None:
    chunks = list(chunk_turn("Hello there", "assistant"))
    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.text == "Assistant: Hello there"
    assert chunk.overlap == ""
    assert chunk.importance == pytest.approx(0.6)


def test_chunks_respect_bound_and_reconstruct() -> None:
    text = _long_text()
    chunks = list(chunk_turn(text, "user", max_chars=100, overlap_words=10))
    assert len(chunks) > 1
    assert all(len(chunk.body) <= 100 for chunk in chunks)
    assert reconstruct(chunks) == text
    assert [c.ordinal for c in chunks] == list(range(len(chunks)))
    assert all(c.text.startswith("User: ") for c in chunks)
    assert all(c.importance == pytest.approx(0.4) for c in chunks)


def test_overlap_carries_tail_of_previous_chunk() -> None:
    chunks = list(chunk_turn(_long_text(), "user", max_chars=100, overlap_words=3))
    first, second = chunks[0], chunks[1]
    assert chunks[0].overlap == ""
    assert second.overlap
    assert first.body.endswith(second.overlap)
    assert len(second.overlap.split()) <= 3


def test_overlap_is_limited_to_half_the_words() -> None:
    text = "a" * 60 + " " + "b" * 60 + " " + "c" * 10
    chunks = list(chunk_turn(text, "user", max_chars=70, overlap_words=10))
    assert reconstruct(chunks) == text
    # one-word chunks cannot carry any overlap
    assert all(chunk.overlap == "" for chunk in chunks)


def test_oversized_word_is_split() -> None:
    text = "x" * 250
    chunks = list(chunk_turn(text, "user", max_chars=100))
    assert [len(chunk.body) for chunk in chunks] == [100, 100, 50]
    assert reconstruct(chunks) == text


def test_invalid_bound_rejected() -> None:
    with pytest.raises(ValueError):
        list(chunk_turn("hello", "user", max_chars=0))


def test_conversation_ordinals_run_across_turns() -> None:
    turns = [("user", _long_text(40)), ("assistant", "Short answer")]
    chunks = list(chunk_conversation(turns, max_chars=100))
    assert [c.ordinal for c in chunks] == list(range(len(chunks)))
    assert chunks[-1].label == "Assistant"
