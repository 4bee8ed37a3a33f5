"""PostgreSQL retrieval backend over the ``file_chunks`` table."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence

import asyncpg

from ..contracts import RetrievedChunk
from ..errors import RetrievalError
from .base import Retriever

logger = logging.getLogger(__name__)


class PostgresRetriever(Retriever):
    """Query chunks through the ``match_chunks`` SQL function.

    ``match_chunks(query_text, match_workspace_id, match_count, filter_file_ids)``
    is expected to return ``file_chunks`` rows with a ``similarity`` column.
    The unranked path reads ``file_chunks`` directly, joined to
    ``bucket_files`` for the file name.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        await conn.set_type_codec(
            "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )
        return conn

    @staticmethod
    def _row_to_chunk(row: Any, similarity: Optional[float] = None) -> RetrievedChunk:
        metadata = row["metadata"] or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        keys = row.keys()
        file_name = (
            (row["file_name"] if "file_name" in keys else None)
            or metadata.get("file_name")
            or "unknown"
        )
        return RetrievedChunk(
            id=str(row["id"]),
            file_id=str(row["file_id"]),
            workspace_id=str(row["workspace_id"]),
            chunk_index=row["chunk_index"] or 0,
            content=row["content"],
            token_count=row["token_count"] or 0,
            metadata=metadata,
            similarity=similarity if similarity is not None else row["similarity"],
            file_name=file_name,
        )

    async def retrieve(
        self,
        workspace_id: str,
        query: str,
        file_ids: Optional[Sequence[str]] = None,
        top_k: int = 20,
    ) -> List[RetrievedChunk]:
        try:
            conn = await self._connect()
        except (OSError, asyncpg.PostgresError) as e:
            raise RetrievalError(f"Cannot reach retrieval database: {e}") from e
        try:
            rows = await conn.fetch(
                "SELECT * FROM match_chunks("
                "query_text => $1, match_workspace_id => $2, "
                "match_count => $3, filter_file_ids => $4)",
                query,
                workspace_id,
                top_k,
                list(file_ids) if file_ids else None,
            )
        except asyncpg.PostgresError as e:
            raise RetrievalError(f"match_chunks failed: {e}") from e
        finally:
            await conn.close()
        return [self._row_to_chunk(row) for row in rows]

    async def recent_chunks(
        self,
        workspace_id: str,
        file_ids: Optional[Sequence[str]] = None,
        limit: int = 20,
    ) -> List[RetrievedChunk]:
        try:
            conn = await self._connect()
        except (OSError, asyncpg.PostgresError) as e:
            raise RetrievalError(f"Cannot reach retrieval database: {e}") from e
        try:
            rows = await conn.fetch(
                """
                SELECT fc.id, fc.file_id, fc.workspace_id, fc.chunk_index,
                       fc.content, fc.token_count, fc.metadata,
                       bf.name AS file_name
                FROM file_chunks fc
                JOIN bucket_files bf ON bf.id = fc.file_id
                WHERE fc.workspace_id::text = $1
                  AND ($2::text[] IS NULL OR fc.file_id::text = ANY($2::text[]))
                ORDER BY fc.chunk_index ASC
                LIMIT $3
                """,
                workspace_id,
                list(file_ids) if file_ids else None,
                limit,
            )
        except asyncpg.PostgresError as e:
            raise RetrievalError(f"file_chunks query failed: {e}") from e
        finally:
            await conn.close()
        return [self._row_to_chunk(row, similarity=0.0) for row in rows]
