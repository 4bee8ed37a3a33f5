"""Runs a single workflow step against the model adapter."""

from __future__ import annotations

import json
import logging
import time
from typing import Dict, Mapping, Optional, Union

from ..context import RunContext
from ..contracts import ProgressEntry, WorkflowStep
from ..errors import StepInvocationFailure
from ..llm import InvocationMode, ModelAdapter
from ..outputs import RawOutput, StructuredOutput, parse_step_output
from ..progress import ProgressRecorder
from .prompts import resolve_instructions, running_message

logger = logging.getLogger(__name__)

NO_DOCUMENTS_NOTICE = "No business documents were retrieved for this run."


def _format_value(value: object) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def build_step_message(ctx: RunContext) -> str:
    """Compose the user message for the next step from the run context."""
    lines = ["=== USER INPUT ==="]
    for key, value in ctx.user_input.items():
        lines.append(f"{key}: {_format_value(value)}")

    lines.append("")
    lines.append("=== BUSINESS DOCUMENTS ===")
    if ctx.context:
        for idx, chunk in enumerate(ctx.context, start=1):
            lines.append(
                f"--- Document {idx}: {chunk.file_name} "
                f"(chunk {chunk.chunk_index}, relevance: {chunk.similarity:.3f}) ---"
            )
            lines.append(chunk.content)
    else:
        lines.append(NO_DOCUMENTS_NOTICE)

    outputs = ctx.completed_outputs()
    if outputs:
        lines.append("")
        lines.append("=== PREVIOUS AGENT OUTPUTS ===")
        for step_id, output in outputs:
            lines.append(f"--- {step_id} ---")
            lines.append(json.dumps(output.payload(), indent=2, default=str))

    return "\n".join(lines)


class StepExecutor:
    """Execute workflow steps and keep the run context up to date."""

    def __init__(
        self,
        model_adapter: ModelAdapter,
        recorder: ProgressRecorder,
        role_modes: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._model_adapter = model_adapter
        self._recorder = recorder
        self._role_modes: Dict[str, str] = dict(role_modes or {})

    def mode_for(self, agent_role: str) -> InvocationMode:
        return InvocationMode(self._role_modes.get(agent_role, InvocationMode.DIRECT))

    async def _emit(
        self,
        ctx: RunContext,
        step: WorkflowStep,
        status: str,
        message: str,
        duration_ms: Optional[int] = None,
    ) -> None:
        entry = ProgressEntry(
            agent=step.name,
            role=step.agent_role,
            status=status,
            message=message,
            duration_ms=duration_ms,
        )
        await self._recorder.record(ctx, entry)

    async def execute(
        self, ctx: RunContext, step: WorkflowStep
    ) -> Union[StructuredOutput, RawOutput]:
        """Run ``step`` and store its parsed output in ``ctx``.

        Raises:
            StepInvocationFailure: if the model adapter raises. An ``error``
                progress entry is recorded first.
        """
        started = time.monotonic()
        await self._emit(ctx, step, "running", running_message(step.name, step.agent_role))

        try:
            message = build_step_message(ctx)
            instructions = resolve_instructions(step.agent_role, step.instructions)
            mode = self.mode_for(step.agent_role)
            logger.info(f"Run {ctx.run_id}: step {step.id} started ({mode.value})")
            result = await self._model_adapter.invoke(instructions, message, mode)
            output = parse_step_output(result.content)
        except Exception as e:
            elapsed = int((time.monotonic() - started) * 1000)
            logger.error(f"Run {ctx.run_id}: step {step.id} failed: {e}")
            await self._emit(ctx, step, "error", f"{step.name} failed: {e}", elapsed)
            raise StepInvocationFailure(step.id, str(e)) from e

        if isinstance(output, RawOutput):
            logger.warning(
                f"Run {ctx.run_id}: step {step.id} returned non-JSON output, kept as raw text"
            )
        ctx.record_output(step.id, output, result.input_tokens, result.output_tokens)

        elapsed = int((time.monotonic() - started) * 1000)
        await self._emit(ctx, step, "completed", f"{step.name} finished.", elapsed)
        logger.info(f"Run {ctx.run_id}: step {step.id} completed in {elapsed}ms")
        return output
