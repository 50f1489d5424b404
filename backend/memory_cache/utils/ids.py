"""ID helpers."""

from __future__ import annotations

import uuid


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def short_id(identifier: str, length: int = 8) -> str:
    """Trim an identifier (and its prefix) for log lines."""
    _, _, base = identifier.rpartition("_")
    return base[:length]
