"""Read-side views of a run for polling and streaming clients."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, List, Optional

from pydantic import BaseModel, Field

from .constants import DEFAULT_STREAM_LIFESPAN, DEFAULT_STREAM_POLL_INTERVAL
from .contracts import Deliverable, ProgressEntry
from .errors import RunNotFound
from .persistence import RunRepository
from .persistence.models import RunRecord, RunStatus

logger = logging.getLogger(__name__)

STREAM_TIMEOUT_ERROR = "Stream timeout"
RUN_NOT_FOUND_ERROR = "Run not found"


class RunStatusView(BaseModel):
    """Snapshot of a run as exposed to clients."""

    id: str
    status: RunStatus
    progress: List[ProgressEntry] = Field(default_factory=list)
    result: Optional[Deliverable] = None
    error: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: RunRecord) -> "RunStatusView":
        # A completed run exposes only its deliverable.
        error = record.error if record.status != RunStatus.COMPLETED else None
        return cls(
            id=record.id,
            status=record.status,
            progress=record.progress,
            result=record.result,
            error=error,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )


class RunUpdate(BaseModel):
    """One event on a run status stream."""

    status: Optional[RunStatus] = None
    new_entries: List[ProgressEntry] = Field(default_factory=list)
    progress: List[ProgressEntry] = Field(default_factory=list)
    result: Optional[Deliverable] = None
    error: Optional[str] = None


async def read_run_status(repository: RunRepository, run_id: str) -> RunStatusView:
    """Return the current state of ``run_id``.

    Raises:
        RunNotFound: if the repository has no such run.
    """
    record = await repository.get_run(run_id)
    if record is None:
        raise RunNotFound(run_id)
    return RunStatusView.from_record(record)


async def stream_run(
    repository: RunRepository,
    run_id: str,
    poll_interval: float = DEFAULT_STREAM_POLL_INTERVAL,
    lifespan: float = DEFAULT_STREAM_LIFESPAN,
) -> AsyncIterator[RunUpdate]:
    """Yield progress as it is appended until the run ends or ``lifespan`` elapses.

    An update is produced only when new progress entries exist or the run has
    reached a terminal state; the stream closes after the terminal update.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + lifespan
    delivered = 0

    while True:
        try:
            view = await read_run_status(repository, run_id)
        except RunNotFound:
            yield RunUpdate(error=RUN_NOT_FOUND_ERROR)
            return
        except Exception:
            logger.exception(f"Polling run {run_id} failed, retrying")
            view = None

        if view is not None:
            new_entries = view.progress[delivered:]
            terminal = view.status.is_terminal
            if new_entries or terminal:
                delivered = len(view.progress)
                yield RunUpdate(
                    status=view.status,
                    new_entries=new_entries,
                    progress=view.progress,
                    result=view.result if terminal else None,
                    error=view.error if terminal else None,
                )
            if terminal:
                return

        if loop.time() >= deadline:
            logger.info(f"Stream for run {run_id} reached its {lifespan}s lifespan")
            yield RunUpdate(error=STREAM_TIMEOUT_ERROR)
            return
        await asyncio.sleep(poll_interval)
