"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "MEMC_"
DEFAULT_CONFIG_PATH = Path("~/.config/memory-cache/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_base"): "embedding_api_base",
    ("embeddings", "api_key_env"): "embedding_api_key_env",
    ("cache", "similarity_threshold"): "cache_similarity_threshold",
    ("cache", "ttl_days"): "cache_ttl_days",
    ("cache", "front_capacity"): "front_cache_capacity",
    ("cache", "scan_limit"): "cache_scan_limit",
    ("retrieval", "top_k"): "retrieval_top_k",
    ("retrieval", "min_score"): "retrieval_min_score",
    ("retrieval", "scan_limit"): "retrieval_scan_limit",
    ("retrieval", "freshness_window_days"): "freshness_window_days",
    ("retrieval", "retention_days"): "retention_days",
    ("chunking", "max_chars"): "chunk_max_chars",
    ("chunking", "overlap_words"): "chunk_overlap_words",
    ("chunking", "summary_chars"): "summary_chars",
    ("timeouts", "embed_seconds"): "embed_timeout_seconds",
    ("timeouts", "store_seconds"): "store_timeout_seconds",
    ("indexer", "max_attempts"): "indexer_max_attempts",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables.

    The similarity thresholds and the freshness window are hand-tuned values;
    retune them when switching embedding models.
    """

    db_path: Path = Field(default=Path.home() / ".memory-cache" / "memory.db")
    embedding_provider: Literal["auto", "hashed", "http"] = "auto"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = Field(default=384, gt=0)
    embedding_api_base: str = "https://api.openai.com/v1"
    embedding_api_key_env: str = "OPENAI_API_KEY"
    cache_similarity_threshold: float = Field(default=0.92, ge=0.0, le=1.0)
    cache_ttl_days: float = Field(default=7.0, gt=0)
    front_cache_capacity: int = Field(default=100, gt=0)
    cache_scan_limit: int = Field(default=50, gt=0)
    retrieval_top_k: int = Field(default=3, gt=0)
    retrieval_min_score: float = Field(default=0.75, ge=0.0, le=1.0)
    retrieval_scan_limit: int = Field(default=1000, gt=0)
    freshness_window_days: float = Field(default=90.0, gt=0)
    retention_days: float = Field(default=90.0, gt=0)
    chunk_max_chars: int = Field(default=500, gt=0)
    chunk_overlap_words: int = Field(default=10, ge=0)
    summary_chars: int = Field(default=200, gt=0)
    embed_timeout_seconds: float = Field(default=10.0, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    indexer_max_attempts: int = Field(default=3, gt=0)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @property
    def cache_ttl_ms(self) -> int:
        return int(self.cache_ttl_days * 86_400_000)

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with MEMC_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
