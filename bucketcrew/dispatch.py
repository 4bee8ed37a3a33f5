"""Start-run entry points."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence, Set

from .contracts import RunRequest
from .engine import WorkflowEngine
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class RunDispatcher:
    """Hands runs to the engine in the background or to a worker queue.

    Quota checks and run record creation happen before either call.
    """

    def __init__(self, engine: Optional[WorkflowEngine] = None, queue: str = "runs") -> None:
        self._engine = engine
        self._queue = queue
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    def start_run(
        self,
        run_id: str,
        workspace_id: str,
        template_id: str,
        user_input: Optional[Dict[str, Any]] = None,
        file_ids: Optional[Sequence[str]] = None,
    ) -> asyncio.Task:
        """Execute the run as a detached task on the running loop.

        The task is returned for callers that want to await it; the outcome is
        otherwise observable only through the run record.
        """
        if self._engine is None:
            raise RuntimeError("RunDispatcher needs an engine to start runs in-process")

        task = asyncio.create_task(
            self._engine.execute_workflow(
                run_id, workspace_id, template_id, user_input, file_ids
            ),
            name=f"run:{run_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info(f"Run {run_id} started in background")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}", exc_info=exc
            )

    async def submit(
        self, transport: BaseTransport, request: RunRequest, queue: Optional[str] = None
    ) -> str:
        """Publish ``request`` for a worker and return its message id."""
        target = queue or self._queue
        await transport.publish(target, request)
        logger.info(f"Run {request.run_id} queued on {target}")
        return request.message_id

    async def wait_all(self) -> None:
        """Wait for background runs; failures stay on their run records."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
