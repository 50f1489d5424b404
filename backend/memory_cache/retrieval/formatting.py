"""Render retrieval hits as a prompt-ready context block."""

from __future__ import annotations

from typing import Sequence

from memory_cache.models.entities import IndexedChunk
from memory_cache.retrieval.similarity import SearchHit

CONTEXT_HEADER = "## Relevant Context from Your History"


def format_context(hits: Sequence[SearchHit[IndexedChunk]], summary_chars: int = 200) -> str:
    if not hits:
        return ""
    lines = ["", "", CONTEXT_HEADER]
    for idx, hit in enumerate(hits, start=1):
        chunk = hit.candidate
        label = chunk.source_label or chunk.source_ref
        lines.append("")
        lines.append(f"**[{idx}]** (from {label}, relevance: {round(hit.final_score * 100)}%)")
        lines.append(f"{chunk.summary or chunk.text[:summary_chars]}...")
    return "\n".join(lines) + "\n"


__all__ = ["format_context", "CONTEXT_HEADER"]
