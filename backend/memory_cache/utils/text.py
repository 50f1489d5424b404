"""Text processing helpers."""

from __future__ import annotations


def preview(text: str, limit: int = 200) -> str:
    """First ``limit`` characters of ``text``, used as a stored summary."""
    return text[:limit]
