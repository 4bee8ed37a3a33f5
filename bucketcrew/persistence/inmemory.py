"""In-memory implementation of the run repository."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from ..contracts import Deliverable, ProgressEntry
from ..errors import RunNotFound
from .models import RunRecord, RunStatus, apply_status
from .repository import RunRepository


class InMemoryRunRepository(RunRepository):
    """Store run state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Readers always receive copies, so a
    caller holding a record never observes later writes through it.
    """

    def __init__(self) -> None:
        self._runs: Dict[str, RunRecord] = {}
        self._deliverables: Dict[str, Deliverable] = {}
        self._lock = asyncio.Lock()

    def _require(self, run_id: str) -> RunRecord:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    # ------------------------------------------------------------------
    async def create_run(
        self,
        run_id: str,
        workspace_id: str,
        template_id: str,
        user_input: dict[str, Any] | None = None,
        file_ids: list[str] | None = None,
    ) -> RunRecord:
        async with self._lock:
            if run_id in self._runs:
                raise ValueError(f"Run already exists: {run_id}")
            record = RunRecord(
                id=run_id,
                workspace_id=workspace_id,
                template_id=template_id,
                input=user_input or {},
                file_ids=file_ids or [],
            )
            self._runs[run_id] = record
            return record.model_copy(deep=True)

    async def get_run(self, run_id: str) -> RunRecord | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def list_runs(self, workspace_id: Optional[str] = None) -> list[RunRecord]:
        return [
            run.model_copy(deep=True)
            for run in self._runs.values()
            if workspace_id is None or run.workspace_id == workspace_id
        ]

    async def append_progress(self, run_id: str, entry: ProgressEntry) -> None:
        async with self._lock:
            self._require(run_id).progress.append(entry)

    async def set_status(
        self,
        run_id: str,
        status: RunStatus,
        *,
        result: Deliverable | None = None,
        error: str | None = None,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> RunRecord:
        async with self._lock:
            run = self._require(run_id)
            apply_status(run, status, result, error, input_tokens, output_tokens)
            return run.model_copy(deep=True)

    # ------------------------------------------------------------------
    async def create_deliverable(self, deliverable: Deliverable) -> None:
        async with self._lock:
            if deliverable.id in self._deliverables:
                raise ValueError(f"Deliverable already exists: {deliverable.id}")
            self._deliverables[deliverable.id] = deliverable.model_copy(deep=True)

    async def get_deliverable(self, deliverable_id: str) -> Deliverable | None:
        deliverable = self._deliverables.get(deliverable_id)
        return deliverable.model_copy(deep=True) if deliverable else None

    async def list_deliverables(self, workspace_id: str) -> list[Deliverable]:
        matches = [
            d.model_copy(deep=True)
            for d in self._deliverables.values()
            if d.workspace_id == workspace_id
        ]
        return sorted(matches, key=lambda d: d.created_at, reverse=True)

    async def update_checklist_item(
        self, deliverable_id: str, item_id: str, completed: bool
    ) -> Deliverable:
        async with self._lock:
            deliverable = self._deliverables.get(deliverable_id)
            if deliverable is None:
                raise KeyError(f"Deliverable not found: {deliverable_id}")
            item = next((i for i in deliverable.checklist if i.id == item_id), None)
            if item is None:
                raise KeyError(f"Checklist item not found: {item_id}")
            item.completed = completed
            return deliverable.model_copy(deep=True)
