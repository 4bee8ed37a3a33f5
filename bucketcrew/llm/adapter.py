"""Model invocation through pydantic-ai agents."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.messages import ModelResponse, ThinkingPart
from pydantic_ai.models import Model
from pydantic_ai.usage import UsageLimits

from ..config import ModelConfig
from .tools import ANALYSIS_TOOLS

logger = logging.getLogger(__name__)


class InvocationMode(str, Enum):
    DIRECT = "direct"
    TOOLS = "tools"
    REASONING = "reasoning"


class ModelCallResult(BaseModel):
    """Final text of a model call plus its accounting."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    thinking: Optional[str] = None


class ModelAdapter(Protocol):
    """Runs one prompt in the requested invocation mode."""

    async def invoke(
        self, instructions: str, message: str, mode: InvocationMode
    ) -> ModelCallResult:
        """Return the model's final answer for ``message``."""


class PydanticAIModelAdapter(ModelAdapter):
    """``ModelAdapter`` backed by a fresh pydantic-ai ``Agent`` per call.

    ``model`` may be a provider-prefixed model name (``anthropic:...``) or a
    pydantic-ai ``Model`` instance, which is what tests pass in.
    """

    def __init__(
        self,
        model: Union[str, Model, None] = None,
        settings: Optional[ModelConfig] = None,
    ) -> None:
        self.settings = settings or ModelConfig()
        self.model = model or self.settings.name

    @property
    def model_name(self) -> str:
        if isinstance(self.model, str):
            return self.model
        return getattr(self.model, "model_name", type(self.model).__name__)

    def _model_settings(self, mode: InvocationMode) -> Dict[str, Any]:
        if mode == InvocationMode.TOOLS:
            return {
                "max_tokens": self.settings.max_tokens,
                "temperature": self.settings.tool_temperature,
            }
        if mode == InvocationMode.REASONING:
            return {
                "max_tokens": self.settings.reasoning_max_tokens,
                "anthropic_thinking": {
                    "type": "enabled",
                    "budget_tokens": self.settings.thinking_budget,
                },
            }
        return {
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

    def _build_agent(self, instructions: str, mode: InvocationMode) -> Agent:
        tools = ANALYSIS_TOOLS if mode == InvocationMode.TOOLS else []
        return Agent(
            self.model,
            instructions=instructions or None,
            tools=tools,
            model_settings=self._model_settings(mode),
            defer_model_check=True,
        )

    async def invoke(
        self, instructions: str, message: str, mode: InvocationMode
    ) -> ModelCallResult:
        mode = InvocationMode(mode)
        agent = self._build_agent(instructions, mode)
        usage_limits = None
        if mode == InvocationMode.TOOLS:
            usage_limits = UsageLimits(request_limit=self.settings.max_tool_turns)

        logger.debug(f"Invoking {self.model_name} in {mode.value} mode")
        result = await agent.run(message, usage_limits=usage_limits)
        usage = result.usage()

        thinking = None
        if mode == InvocationMode.REASONING:
            thoughts = [
                part.content
                for msg in result.new_messages()
                if isinstance(msg, ModelResponse)
                for part in msg.parts
                if isinstance(part, ThinkingPart)
            ]
            thinking = "\n".join(thoughts) or None

        return ModelCallResult(
            content=str(result.output),
            input_tokens=usage.input_tokens or 0,
            output_tokens=usage.output_tokens or 0,
            model=self.model_name,
            thinking=thinking,
        )
