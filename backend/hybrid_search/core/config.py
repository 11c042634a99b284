"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "HSEARCH_"
DEFAULT_CONFIG_PATH = Path("~/.config/hybrid-search/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("index", "patterns"): "index_patterns",
    ("models", "host"): "model_host",
    ("models", "timeout"): "request_timeout",
    ("models", "embedding"): "embedding_model",
    ("models", "embedding_dim"): "embedding_dim",
    ("models", "generation"): "generation_model",
    ("models", "rerank"): "rerank_model",
    ("expansion", "count"): "expansion_count",
    ("retrieval", "top_k_lexical"): "top_k_lexical",
    ("retrieval", "top_k_vector"): "top_k_vector",
    ("retrieval", "top_k_final"): "top_k_final",
    ("fusion", "rrf_k"): "rrf_k",
    ("fusion", "original_weight"): "original_weight",
    ("fusion", "expansion_weight"): "expansion_weight",
    ("rerank", "candidates"): "rerank_candidates",
    ("rerank", "batch_size"): "rerank_batch_size",
    ("rerank", "max_chars"): "rerank_max_chars",
    ("rerank", "max_tokens"): "rerank_max_tokens",
    ("blend", "top_rank"): "blend_top_rank",
    ("blend", "mid_rank"): "blend_mid_rank",
    ("blend", "top_weight"): "blend_top_weight",
    ("blend", "mid_weight"): "blend_mid_weight",
    ("blend", "tail_weight"): "blend_tail_weight",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".cache" / "hybrid-search" / "index.db")
    index_patterns: list[str] = Field(default_factory=lambda: ["*.md", "*.txt"])

    model_host: str = "http://127.0.0.1:11434"
    request_timeout: float = Field(default=60.0, gt=0)
    embedding_model: str = "embeddinggemma"
    embedding_dim: int = Field(default=768, ge=1)
    generation_model: str = "qwen3:1.7b"
    rerank_model: str = "qwen3:0.6b"

    expansion_count: int = Field(default=3, ge=0)
    top_k_lexical: int = Field(default=30, ge=1)
    top_k_vector: int = Field(default=30, ge=1)
    top_k_final: int = Field(default=10, ge=1)

    rrf_k: float = Field(default=60.0, ge=0)
    original_weight: float = Field(default=2.0, gt=0)
    expansion_weight: float = Field(default=1.0, gt=0)

    rerank_candidates: int = Field(default=30, ge=1)
    rerank_batch_size: int = Field(default=5, ge=1)
    rerank_max_chars: int = Field(default=4000, ge=1)
    rerank_max_tokens: int = Field(default=2, ge=1)

    blend_top_rank: int = Field(default=3, ge=1)
    blend_mid_rank: int = Field(default=10, ge=1)
    blend_top_weight: float = Field(default=0.75, ge=0, le=1)
    blend_mid_weight: float = Field(default=0.60, ge=0, le=1)
    blend_tail_weight: float = Field(default=0.40, ge=0, le=1)

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

    @field_validator("index_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("model_host")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_tiers(self) -> "Settings":
        if self.blend_mid_rank < self.blend_top_rank:
            raise ValueError("blend_mid_rank must not be smaller than blend_top_rank")
        return self

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
    """Map environment variables with HSEARCH_ prefix into Settings fields."""
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
