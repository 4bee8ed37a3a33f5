"""PostgreSQL implementation of the run repository."""

from __future__ import annotations

import json
from typing import Any, Optional

import asyncpg

from ..contracts import Deliverable, ProgressEntry
from ..errors import RunNotFound
from .models import RunRecord, RunStatus, apply_status
from .repository import RunRepository

_RUN_COLUMNS = (
    "id, workspace_id, template_id, input, file_ids, status, progress, result, "
    "error, input_tokens, output_tokens, created_at, started_at, completed_at"
)


class PostgresRunRepository(RunRepository):
    """Persist run state using PostgreSQL.

    The progress log is a JSONB array appended with ``||`` in a single
    UPDATE, which PostgreSQL applies atomically per row.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        await conn.set_type_codec(
            "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_runs (
                id TEXT PRIMARY KEY,
                workspace_id TEXT NOT NULL,
                template_id TEXT NOT NULL,
                input JSONB NOT NULL DEFAULT '{}'::jsonb,
                file_ids JSONB NOT NULL DEFAULT '[]'::jsonb,
                status TEXT NOT NULL,
                progress JSONB NOT NULL DEFAULT '[]'::jsonb,
                result JSONB,
                error TEXT,
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMPTZ NOT NULL,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS deliverables (
                id TEXT PRIMARY KEY,
                workspace_id TEXT NOT NULL,
                run_id TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    @staticmethod
    def _row_to_run(row: asyncpg.Record) -> RunRecord:
        return RunRecord(
            id=row["id"],
            workspace_id=row["workspace_id"],
            template_id=row["template_id"],
            input=row["input"],
            file_ids=row["file_ids"],
            status=RunStatus(row["status"]),
            progress=[ProgressEntry.model_validate(e) for e in row["progress"]],
            result=Deliverable.model_validate(row["result"]) if row["result"] else None,
            error=row["error"],
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    # ------------------------------------------------------------------
    async def create_run(
        self,
        run_id: str,
        workspace_id: str,
        template_id: str,
        user_input: dict[str, Any] | None = None,
        file_ids: list[str] | None = None,
    ) -> RunRecord:
        record = RunRecord(
            id=run_id,
            workspace_id=workspace_id,
            template_id=template_id,
            input=user_input or {},
            file_ids=file_ids or [],
        )
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflow_runs (id, workspace_id, template_id, input,
                                           file_ids, status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                record.id,
                record.workspace_id,
                record.template_id,
                record.input,
                record.file_ids,
                record.status.value,
                record.created_at,
            )
        finally:
            await conn.close()
        return record

    async def get_run(self, run_id: str) -> RunRecord | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE id = $1", run_id
            )
        finally:
            await conn.close()
        return self._row_to_run(row) if row else None

    async def list_runs(self, workspace_id: Optional[str] = None) -> list[RunRecord]:
        conn = await self._connect()
        try:
            if workspace_id is None:
                rows = await conn.fetch(
                    f"SELECT {_RUN_COLUMNS} FROM workflow_runs ORDER BY created_at"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE workspace_id = $1 ORDER BY created_at",
                    workspace_id,
                )
        finally:
            await conn.close()
        return [self._row_to_run(r) for r in rows]

    async def append_progress(self, run_id: str, entry: ProgressEntry) -> None:
        conn = await self._connect()
        try:
            status = await conn.execute(
                "UPDATE workflow_runs SET progress = progress || $1::jsonb WHERE id = $2",
                [entry.model_dump(mode="json")],
                run_id,
            )
        finally:
            await conn.close()
        if status.endswith(" 0"):
            raise RunNotFound(run_id)

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
        conn = await self._connect()
        try:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE id = $1 FOR UPDATE",
                    run_id,
                )
                if row is None:
                    raise RunNotFound(run_id)
                record = self._row_to_run(row)
                apply_status(record, status, result, error, input_tokens, output_tokens)
                await conn.execute(
                    """
                    UPDATE workflow_runs
                    SET status = $1, result = $2, error = $3, input_tokens = $4,
                        output_tokens = $5, started_at = $6, completed_at = $7
                    WHERE id = $8
                    """,
                    record.status.value,
                    record.result.model_dump(mode="json") if record.result else None,
                    record.error,
                    record.input_tokens,
                    record.output_tokens,
                    record.started_at,
                    record.completed_at,
                    run_id,
                )
        finally:
            await conn.close()
        return record

    # ------------------------------------------------------------------
    async def create_deliverable(self, deliverable: Deliverable) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO deliverables (id, workspace_id, run_id, data, created_at) VALUES ($1, $2, $3, $4, $5)",
                deliverable.id,
                deliverable.workspace_id,
                deliverable.run_id,
                deliverable.model_dump(mode="json"),
                deliverable.created_at,
            )
        finally:
            await conn.close()

    async def get_deliverable(self, deliverable_id: str) -> Deliverable | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data FROM deliverables WHERE id = $1", deliverable_id
            )
        finally:
            await conn.close()
        return Deliverable.model_validate(row["data"]) if row else None

    async def list_deliverables(self, workspace_id: str) -> list[Deliverable]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT data FROM deliverables WHERE workspace_id = $1 ORDER BY created_at DESC",
                workspace_id,
            )
        finally:
            await conn.close()
        return [Deliverable.model_validate(r["data"]) for r in rows]

    async def update_checklist_item(
        self, deliverable_id: str, item_id: str, completed: bool
    ) -> Deliverable:
        conn = await self._connect()
        try:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT data FROM deliverables WHERE id = $1 FOR UPDATE",
                    deliverable_id,
                )
                if row is None:
                    raise KeyError(f"Deliverable not found: {deliverable_id}")
                deliverable = Deliverable.model_validate(row["data"])
                item = next((i for i in deliverable.checklist if i.id == item_id), None)
                if item is None:
                    raise KeyError(f"Checklist item not found: {item_id}")
                item.completed = completed
                await conn.execute(
                    "UPDATE deliverables SET data = $1 WHERE id = $2",
                    deliverable.model_dump(mode="json"),
                    deliverable_id,
                )
        finally:
            await conn.close()
        return deliverable
