"""
Configuration utilities.
"""

import json
import os
from pathlib import Path
from typing import Literal

import yaml

from pydantic import BaseModel, Field, model_validator

# Environment variable -> config field
ENV_OVERRIDES = {
    "OPEN_AI_KEY": "api_key",
    "OPENAI_API_KEY": "api_key",
    "OPEN_AI_MODEL_NAME": "completion_model",
    "NOTECHAT_SNAPSHOT_PATH": "snapshot_path",
    "NOTECHAT_LOG_LEVEL": "log_level",
}


class NoteChatConfig(BaseModel):
    """Configuration for the notes assistant."""

    # Chunking
    chunk_size: int = Field(default=250, gt=0)
    chunk_overlap: int = Field(default=0, ge=0)

    # Retrieval
    top_k: int = Field(default=5, ge=1)

    # Providers
    embedding_provider: Literal["openai", "local", "fake"] = "openai"
    embedding_model: str = "text-embedding-ada-002"
    completion_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    api_key: str | None = None
    base_url: str | None = None

    # Index persistence; None keeps the index in memory only
    snapshot_path: str | None = None

    # Events
    subscriber_queue_size: int = Field(default=256, gt=0)

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_overlap(self) -> "NoteChatConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> "NoteChatConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "NoteChatConfig":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


def load_config(path: str | Path = "notechat.yaml") -> NoteChatConfig:
    """
    Load configuration from file, then apply environment overrides.

    Args:
        path: Path to config file; a missing file means defaults

    Returns:
        NoteChatConfig instance
    """
    path = Path(path)

    config = NoteChatConfig.from_file(path) if path.exists() else NoteChatConfig()

    overrides = {
        field: os.environ[name]
        for name, field in ENV_OVERRIDES.items()
        if os.environ.get(name)
    }
    if overrides:
        config = NoteChatConfig(**{**config.model_dump(), **overrides})

    return config
