"""Context retrieval backends."""

from __future__ import annotations

from typing import Optional

from ..config import BucketCrewConfig, load_config
from .base import Retriever
from .inmemory import InMemoryRetriever

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresRetriever
except Exception:  # pragma: no cover - optional dependency
    PostgresRetriever = None  # type: ignore


def get_retriever(config: Optional[BucketCrewConfig] = None) -> Retriever:
    """Return a retriever matching the configured database.

    Without a PostgreSQL ``database_url`` an empty in-memory retriever is
    returned and runs proceed without document context.
    """

    config = config or load_config()
    url = config.database_url or ""
    if url.startswith("postgres://") or url.startswith("postgresql://"):
        if PostgresRetriever is None:
            raise RuntimeError("Postgres support not available")
        return PostgresRetriever(url)
    return InMemoryRetriever()


__all__ = ["Retriever", "InMemoryRetriever", "PostgresRetriever", "get_retriever"]
