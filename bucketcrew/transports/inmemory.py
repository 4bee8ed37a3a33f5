"""In-process queue transport."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, List, Optional, Tuple

from ..contracts import RunRequest
from .base import BaseTransport

RawRequest = Tuple[str, RunRequest]


class InMemoryTransport(BaseTransport[RawRequest]):
    """Queue living in the current event loop, for tests and single-process use."""

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[RawRequest]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self.acked: List[str] = []

    async def publish(self, queue: str, request: RunRequest) -> None:
        raw = (request.to_json(), request)
        async with self._lock:
            self._queues[queue].append(raw)

    async def subscribe(
        self, queue: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawRequest, RunRequest]]:
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            raw_message = None
            async with self._lock:
                if self._queues[queue]:
                    raw_message = self._queues[queue].popleft()
            if raw_message is not None:
                yield raw_message, raw_message[1]
                continue

            await asyncio.sleep(0.05)

    async def ack(self, raw_message: RawRequest) -> None:
        self.acked.append(raw_message[1].message_id)

    def pending(self, queue: str) -> int:
        return len(self._queues[queue])
