"""Data models for persisted run state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import Deliverable, ProgressEntry, utcnow
from ..errors import InvalidRunTransition


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}
)

_ALLOWED_TRANSITIONS = {
    RunStatus.PENDING: {RunStatus.RUNNING, RunStatus.FAILED, RunStatus.CANCELLED},
    RunStatus.RUNNING: set(TERMINAL_STATUSES),
}


def check_transition(run_id: str, current: RunStatus, target: RunStatus) -> None:
    """Raise ``InvalidRunTransition`` unless ``current -> target`` is allowed."""
    if target not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidRunTransition(run_id, current.value, target.value)


class RunRecord(BaseModel):
    """Persisted state of one workflow run."""

    id: str
    workspace_id: str
    template_id: str
    input: dict[str, Any] = Field(default_factory=dict)
    file_ids: list[str] = Field(default_factory=list)
    status: RunStatus = RunStatus.PENDING
    progress: list[ProgressEntry] = Field(default_factory=list)
    result: Optional[Deliverable] = None
    error: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


def apply_status(
    record: RunRecord,
    status: RunStatus,
    result: Optional[Deliverable] = None,
    error: Optional[str] = None,
    input_tokens: Optional[int] = None,
    output_tokens: Optional[int] = None,
) -> None:
    """Validate and apply a status change to ``record`` in place."""
    status = RunStatus(status)
    check_transition(record.id, record.status, status)
    record.status = status
    if status == RunStatus.RUNNING:
        record.started_at = utcnow()
    if status.is_terminal:
        record.completed_at = utcnow()
    if result is not None:
        record.result = result
    if error is not None:
        record.error = error
    if input_tokens is not None:
        record.input_tokens = input_tokens
    if output_tokens is not None:
        record.output_tokens = output_tokens
