"""Per-run mutable state shared by the steps of one workflow run."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .contracts import ProgressEntry, RetrievedChunk, WorkflowTemplate
from .outputs import RawOutput, StructuredOutput


@dataclass
class RunContext:
    """State owned by a single ``WorkflowEngine.execute_workflow`` call.

    ``agent_outputs`` preserves completion order. Concurrent steps of one
    parallel group write disjoint keys; ``progress_lock`` serializes appends
    to the progress log so the persisted mirror sees the same order.
    """

    run_id: str
    workspace_id: str
    template: WorkflowTemplate
    user_input: Dict[str, Any] = field(default_factory=dict)
    context: List[RetrievedChunk] = field(default_factory=list)
    agent_outputs: Dict[str, Union[StructuredOutput, RawOutput]] = field(
        default_factory=dict
    )
    progress: List[ProgressEntry] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    progress_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def record_output(
        self,
        step_id: str,
        output: Union[StructuredOutput, RawOutput],
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> None:
        self.agent_outputs[step_id] = output
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

    def completed_outputs(self) -> List[tuple[str, Union[StructuredOutput, RawOutput]]]:
        """Snapshot of ``(step_id, output)`` pairs in completion order."""
        return list(self.agent_outputs.items())
