"""Repository abstraction for run state and deliverable persistence."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from ..contracts import Deliverable, ProgressEntry
from .models import RunRecord, RunStatus


class RunRepository(Protocol):
    """Protocol for run state persistence backends.

    ``append_progress`` must be atomic with respect to concurrent appends for
    the same run, and ``set_status`` must enforce the run lifecycle (see
    ``models.check_transition``).
    """

    async def create_run(
        self,
        run_id: str,
        workspace_id: str,
        template_id: str,
        user_input: dict[str, Any] | None = None,
        file_ids: list[str] | None = None,
    ) -> RunRecord:
        """Persist a new run in ``pending`` state."""

    async def get_run(self, run_id: str) -> RunRecord | None:
        """Retrieve the run by id."""

    async def list_runs(self, workspace_id: Optional[str] = None) -> list[RunRecord]:
        """Return persisted runs, optionally scoped to a workspace."""

    async def append_progress(self, run_id: str, entry: ProgressEntry) -> None:
        """Append one entry to the run's progress log."""

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
        """Move the run to ``status``."""

    async def create_deliverable(self, deliverable: Deliverable) -> None:
        """Store a new deliverable. Existing ids are rejected."""

    async def get_deliverable(self, deliverable_id: str) -> Deliverable | None:
        """Retrieve a deliverable by id."""

    async def list_deliverables(self, workspace_id: str) -> list[Deliverable]:
        """Return deliverables of a workspace, newest first."""

    async def update_checklist_item(
        self, deliverable_id: str, item_id: str, completed: bool
    ) -> Deliverable:
        """Toggle one checklist item of a stored deliverable."""
