"""Stub collaborators shared by unit and integration tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

from bucketcrew.contracts import RetrievedChunk, WorkflowStep, WorkflowTemplate
from bucketcrew.errors import RetrievalError
from bucketcrew.llm import InvocationMode, ModelCallResult
from bucketcrew.persistence import InMemoryRunRepository

Response = Union[str, dict, list, Exception, Callable[[str], Any]]


class ScriptedModelAdapter:
    """Answers by instruction text; falls back to ``default``.

    A dict/list response is JSON-encoded, an exception instance is raised and
    a callable receives the built message.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        default: Response = "{}",
        delay: float = 0.0,
        tokens: tuple[int, int] = (10, 5),
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default
        self.delay = delay
        self.tokens = tokens
        self.calls: List[Dict[str, Any]] = []

    async def invoke(
        self, instructions: str, message: str, mode: InvocationMode
    ) -> ModelCallResult:
        self.calls.append({"instructions": instructions, "message": message, "mode": mode})
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.get(instructions, self.default)
        if callable(response) and not isinstance(response, Exception):
            response = response(message)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return ModelCallResult(
            content=response,
            input_tokens=self.tokens[0],
            output_tokens=self.tokens[1],
            model="stub",
        )


class FailingRetriever:
    """Retriever whose ranked path fails; the unranked path optionally too."""

    def __init__(
        self, fallback: Optional[List[RetrievedChunk]] = None, fail_fallback: bool = False
    ) -> None:
        self.fallback = list(fallback or [])
        self.fail_fallback = fail_fallback
        self.fallback_calls = 0

    async def retrieve(self, workspace_id, query, file_ids=None, top_k=20):
        raise RetrievalError("vector search unavailable")

    async def recent_chunks(self, workspace_id, file_ids=None, limit=20):
        self.fallback_calls += 1
        if self.fail_fallback:
            raise RetrievalError("file_chunks unavailable")
        return self.fallback[:limit]


class FailingDeliverableRepository(InMemoryRunRepository):
    """In-memory repository that refuses to store deliverables."""

    async def create_deliverable(self, deliverable):
        raise RuntimeError("deliverables table is read-only")


class FlakyProgressRepository(InMemoryRunRepository):
    """In-memory repository whose progress appends always fail."""

    async def append_progress(self, run_id, entry):
        raise RuntimeError("progress column locked")


def make_chunk(
    chunk_id: str,
    file_id: str,
    file_name: str,
    content: str = "Revenue grew 12% year over year.",
    workspace_id: str = "ws-1",
    chunk_index: int = 0,
    similarity: float = 0.8,
) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk_id,
        file_id=file_id,
        workspace_id=workspace_id,
        chunk_index=chunk_index,
        content=content,
        similarity=similarity,
        file_name=file_name,
    )


def make_step(step_id: str, role: str = "researcher", **kwargs: Any) -> WorkflowStep:
    kwargs.setdefault("name", step_id.replace("_", " ").title())
    return WorkflowStep(id=step_id, agent_role=role, **kwargs)


def make_template(steps: List[WorkflowStep], template_id: str = "custom") -> WorkflowTemplate:
    return WorkflowTemplate(id=template_id, name=template_id.title(), steps=steps)


def sequential_template(template_id: str = "three-steps") -> WorkflowTemplate:
    """``first -> second -> third`` with distinct instructions per step."""
    return make_template(
        [
            make_step("first", "planner", instructions="first-instructions"),
            make_step(
                "second", "researcher", instructions="second-instructions", depends_on=["first"]
            ),
            make_step(
                "third", "strategist", instructions="third-instructions", depends_on=["second"]
            ),
        ],
        template_id,
    )
