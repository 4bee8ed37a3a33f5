from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_FALLBACK_SIMILARITY,
    DEFAULT_MAX_TOOL_TURNS,
    DEFAULT_MODEL,
    DEFAULT_QUEUE,
    DEFAULT_STREAM_LIFESPAN,
    DEFAULT_STREAM_POLL_INTERVAL,
    DEFAULT_THINKING_BUDGET,
    DEFAULT_TOP_K,
)


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()
    queue: str = DEFAULT_QUEUE


def _default_role_modes() -> Dict[str, str]:
    return {
        "planner": "direct",
        "researcher": "tools",
        "strategist": "reasoning",
        "editor": "reasoning",
    }


class ModelConfig(BaseModel):
    """Model invocation settings shared by all agent roles."""

    name: str = DEFAULT_MODEL
    max_tokens: int = 8192
    temperature: float = 0.4
    tool_temperature: float = 0.3
    max_tool_turns: int = DEFAULT_MAX_TOOL_TURNS
    reasoning_max_tokens: int = 16000
    thinking_budget: int = DEFAULT_THINKING_BUDGET
    role_modes: Dict[str, Literal["direct", "tools", "reasoning"]] = Field(
        default_factory=_default_role_modes
    )


class RetrievalConfig(BaseModel):
    """Context retrieval settings."""

    top_k: int = DEFAULT_TOP_K
    fallback_similarity: float = DEFAULT_FALLBACK_SIMILARITY


class StreamConfig(BaseModel):
    """Run status stream settings."""

    poll_interval: float = DEFAULT_STREAM_POLL_INTERVAL
    lifespan: float = DEFAULT_STREAM_LIFESPAN


class BucketCrewConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    model: ModelConfig = Field(default_factory=ModelConfig)
    retrieval: RetrievalConfig = RetrievalConfig()
    stream: StreamConfig = StreamConfig()
    database_url: Optional[str] = None
    templates_path: Optional[str] = None


def load_config(path: Optional[str] = None) -> BucketCrewConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to BUCKETCREW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("BUCKETCREW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BucketCrewConfig(**data)
    else:
        config = BucketCrewConfig()

    env_db_url = os.getenv("BUCKETCREW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_model = os.getenv("BUCKETCREW_MODEL")
    if env_model:
        config.model.name = env_model
    return config
