"""Worker that executes runs received over a transport."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Optional

from .contracts import RunRequest
from .engine import WorkflowEngine
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class RunWorker:
    """Consumes ``RunRequest`` messages and executes them one at a time.

    ``processed`` keeps the ids of the last ``history`` runs handled;
    ``processed_count`` counts every run since start.
    """

    def __init__(
        self,
        transport: BaseTransport,
        engine: WorkflowEngine,
        queue: str = "runs",
        history: int = 100,
    ) -> None:
        self._transport = transport
        self._engine = engine
        self._queue = queue
        self.processed: Deque[str] = deque(maxlen=history)
        self.processed_count = 0

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Consume from the queue until ``lifespan`` seconds have passed."""
        logger.info(f"Worker listening on queue {self._queue}")
        async for raw_message, request in self._transport.subscribe(
            self._queue, lifespan=lifespan
        ):
            await self._handle(request)
            await self._transport.ack(raw_message)

    async def _handle(self, request: RunRequest) -> None:
        logger.info(
            f"Received run {request.run_id} (template {request.template_id}, "
            f"message {request.message_id})"
        )
        try:
            await self._engine.execute_workflow(
                request.run_id,
                request.workspace_id,
                request.template_id,
                request.user_input,
                request.file_ids,
            )
        except Exception:
            # The engine already recorded the failure on the run.
            logger.exception(f"Run {request.run_id} failed")
        self.processed.append(request.run_id)
        self.processed_count += 1
