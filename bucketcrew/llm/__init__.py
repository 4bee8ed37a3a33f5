"""Model invocation adapters."""

from __future__ import annotations

from typing import Optional

from ..config import BucketCrewConfig, load_config
from .adapter import (
    InvocationMode,
    ModelAdapter,
    ModelCallResult,
    PydanticAIModelAdapter,
)
from .tools import analyze_document_section, calculator


def get_model_adapter(config: Optional[BucketCrewConfig] = None) -> ModelAdapter:
    """Factory function returning the configured model adapter."""

    config = config or load_config()
    return PydanticAIModelAdapter(config.model.name, config.model)


__all__ = [
    "InvocationMode",
    "ModelAdapter",
    "ModelCallResult",
    "PydanticAIModelAdapter",
    "analyze_document_section",
    "calculator",
    "get_model_adapter",
]
