"""Chunking utilities for conversation turns.

Each chunk owns an exact, non-overlapping slice of the input (``body``) and
carries a few words from the end of the previous slice (``overlap``) so
that context survives the cut. Joining the bodies gives back the input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

_WORD_RE = re.compile(r"\S+\s*")

ROLE_LABELS = {"user": "User", "assistant": "Assistant"}
ROLE_IMPORTANCE = {"user": 0.4, "assistant": 0.6}
DEFAULT_IMPORTANCE = 0.5


@dataclass(slots=True)
class Chunk:
    role: str
    label: str
    overlap: str
    body: str
    start: int
    end: int
    ordinal: int
    importance: float

    @property
    def text(self) -> str:
        return f"{self.label}: {self.overlap}{self.body}"


def chunk_turn(
    text: str,
    role: str,
    max_chars: int = 500,
    overlap_words: int = 10,
    first_ordinal: int = 0,
) -> Iterator[Chunk]:
    """Lazily split one role-tagged turn into bounded, overlapping chunks."""
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if not text:
        return
    label = ROLE_LABELS.get(role.lower(), role.strip().title() or "Unknown")
    importance = ROLE_IMPORTANCE.get(role.lower(), DEFAULT_IMPORTANCE)

    if len(text) <= max_chars:
        yield Chunk(role, label, "", text, 0, len(text), first_ordinal, importance)
        return

    ordinal = first_ordinal
    overlap = ""
    current: list[str] = []
    current_len = 0
    start = 0
    for word in _iter_words(text, max_chars):
        if current and current_len + len(word) > max_chars:
            yield Chunk(role, label, overlap, "".join(current), start, start + current_len, ordinal, importance)
            ordinal += 1
            overlap = _tail_words(current, overlap_words)
            start += current_len
            current = []
            current_len = 0
        current.append(word)
        current_len += len(word)
    if current:
        yield Chunk(role, label, overlap, "".join(current), start, start + current_len, ordinal, importance)


def chunk_conversation(
    turns: Iterable[tuple[str, str]],
    max_chars: int = 500,
    overlap_words: int = 10,
) -> Iterator[Chunk]:
    """Chunk ``(role, text)`` turns in order with ordinals running across turns."""
    ordinal = 0
    for role, text in turns:
        for chunk in chunk_turn(text, role, max_chars, overlap_words, first_ordinal=ordinal):
            ordinal = chunk.ordinal + 1
            yield chunk


def reconstruct(chunks: Iterable[Chunk]) -> str:
    """Concatenate chunk bodies, dropping overlap and role prefixes."""
    return "".join(chunk.body for chunk in chunks)


def _iter_words(text: str, max_chars: int) -> Iterator[str]:
    """Yield words with their trailing whitespace; oversized words are hard-split."""
    matches = list(_WORD_RE.finditer(text))
    if not matches:
        # whitespace only
        yield from _split_hard(text, max_chars)
        return
    first = matches[0]
    for idx, match in enumerate(matches):
        word = match.group()
        if idx == 0 and first.start() > 0:
            word = text[: first.start()] + word
        if len(word) > max_chars:
            yield from _split_hard(word, max_chars)
        else:
            yield word


def _split_hard(word: str, max_chars: int) -> Iterator[str]:
    for offset in range(0, len(word), max_chars):
        yield word[offset : offset + max_chars]


def _tail_words(words: Sequence[str], overlap_words: int) -> str:
    count = min(overlap_words, len(words) // 2)
    if count <= 0:
        return ""
    return "".join(words[-count:])


__all__ = ["Chunk", "chunk_turn", "chunk_conversation", "reconstruct"]
