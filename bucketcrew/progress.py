"""Mirrors run progress and lifecycle changes into the run repository."""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import Deliverable, ProgressEntry
from .context import RunContext
from .persistence import RunRepository
from .persistence.models import RunRecord, RunStatus

logger = logging.getLogger(__name__)


class ProgressRecorder:
    """Thin writer over ``RunRepository`` used by the engine and executor."""

    def __init__(self, repository: RunRepository) -> None:
        self._repository = repository

    async def append(self, run_id: str, entry: ProgressEntry) -> None:
        """Persist one progress entry.

        The persisted log is a diagnostic mirror of the in-memory one, so a
        failed write is logged and does not interrupt the run.
        """
        try:
            await self._repository.append_progress(run_id, entry)
        except Exception:
            logger.exception(
                f"Failed to persist progress for run {run_id} ({entry.agent}: {entry.status})"
            )

    async def record(self, ctx: RunContext, entry: ProgressEntry) -> None:
        """Append ``entry`` to the run context and the persisted log in one order."""
        async with ctx.progress_lock:
            ctx.progress.append(entry)
            await self.append(ctx.run_id, entry)

    async def mark_running(self, run_id: str) -> RunRecord:
        logger.info(f"Run {run_id} started")
        return await self._repository.set_status(run_id, RunStatus.RUNNING)

    async def mark_completed(
        self,
        run_id: str,
        deliverable: Deliverable,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> RunRecord:
        logger.info(
            f"Run {run_id} completed (tokens in={input_tokens} out={output_tokens})"
        )
        return await self._repository.set_status(
            run_id,
            RunStatus.COMPLETED,
            result=deliverable,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def mark_failed(
        self,
        run_id: str,
        error: str,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
    ) -> RunRecord:
        logger.error(f"Run {run_id} failed: {error}")
        return await self._repository.set_status(
            run_id,
            RunStatus.FAILED,
            error=error,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def mark_cancelled(self, run_id: str) -> RunRecord:
        logger.warning(f"Run {run_id} cancelled")
        return await self._repository.set_status(run_id, RunStatus.CANCELLED)
