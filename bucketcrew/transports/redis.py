"""Redis list transport for cross-process run hand-off."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, Tuple

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from pydantic import ValidationError

from ..contracts import RunRequest
from .base import BaseTransport

logger = logging.getLogger(__name__)


class RedisTransport(BaseTransport[str]):
    """Uses ``LPUSH``/``BRPOP`` on ``bucketcrew:<queue>`` lists."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisTransport")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self._redis: Optional[Any] = None

    @staticmethod
    def queue_key(queue: str) -> str:
        return f"bucketcrew:{queue}"

    async def connect(self) -> None:
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, queue: str, request: RunRequest) -> None:
        if not self._redis:
            await self.connect()
        await self._redis.lpush(self.queue_key(queue), request.to_json())

    async def subscribe(
        self, queue: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, RunRequest]]:
        if not self._redis:
            await self.connect()

        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            result = await self._redis.brpop(self.queue_key(queue), timeout=1)
            if not result:
                continue

            _, payload = result
            try:
                request = RunRequest.from_json(payload)
            except ValidationError as e:
                logger.error(f"Dropping malformed run request on {queue}: {e}")
                continue
            yield payload, request

    async def ack(self, raw_message: str) -> None:
        """No-op; ``BRPOP`` already removed the message."""
        pass
