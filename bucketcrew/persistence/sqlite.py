"""SQLite implementation of the run repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from ..contracts import Deliverable, ProgressEntry
from ..errors import RunNotFound
from .models import RunRecord, RunStatus, apply_status
from .repository import RunRepository


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteRunRepository(RunRepository):
    """Persist run state using SQLite.

    Progress entries live in their own append-only table, so an append is a
    single INSERT and concurrent writers cannot overwrite each other.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._transaction() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL,
                    template_id TEXT NOT NULL,
                    input TEXT NOT NULL,
                    file_ids TEXT NOT NULL,
                    status TEXT NOT NULL,
                    result TEXT,
                    error TEXT,
                    input_tokens INTEGER NOT NULL DEFAULT 0,
                    output_tokens INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS run_progress (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id TEXT NOT NULL REFERENCES runs(id),
                    entry TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS deliverables (
                    id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL,
                    run_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

    # ------------------------------------------------------------------
    # Helper methods
    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                yield cur
            except BaseException:
                cur.execute("ROLLBACK")
                raise
            else:
                cur.execute("COMMIT")

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def _row_to_run(self, row: sqlite3.Row, progress: list[ProgressEntry]) -> RunRecord:
        return RunRecord(
            id=row["id"],
            workspace_id=row["workspace_id"],
            template_id=row["template_id"],
            input=json.loads(row["input"]),
            file_ids=json.loads(row["file_ids"]),
            status=RunStatus(row["status"]),
            progress=progress,
            result=Deliverable.model_validate_json(row["result"]) if row["result"] else None,
            error=row["error"],
            input_tokens=row["input_tokens"],
            output_tokens=row["output_tokens"],
            created_at=datetime.fromisoformat(row["created_at"]),
            started_at=_dt(row["started_at"]),
            completed_at=_dt(row["completed_at"]),
        )

    def _load_progress(self, run_id: str) -> list[ProgressEntry]:
        rows = self._fetchall(
            "SELECT entry FROM run_progress WHERE run_id = ? ORDER BY id", run_id
        )
        return [ProgressEntry.model_validate_json(r["entry"]) for r in rows]

    def _insert_run(self, record: RunRecord) -> None:
        with self._transaction() as cur:
            cur.execute(
                """
                INSERT INTO runs (id, workspace_id, template_id, input, file_ids,
                                  status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.workspace_id,
                    record.template_id,
                    json.dumps(record.input),
                    json.dumps(record.file_ids),
                    record.status.value,
                    record.created_at.isoformat(),
                ),
            )

    def _append(self, run_id: str, entry: ProgressEntry) -> None:
        with self._transaction() as cur:
            cur.execute("SELECT 1 FROM runs WHERE id = ?", (run_id,))
            if cur.fetchone() is None:
                raise RunNotFound(run_id)
            cur.execute(
                "INSERT INTO run_progress (run_id, entry) VALUES (?, ?)",
                (run_id, entry.model_dump_json()),
            )

    def _update_status(
        self,
        run_id: str,
        status: RunStatus,
        result: Deliverable | None,
        error: str | None,
        input_tokens: int | None,
        output_tokens: int | None,
    ) -> None:
        with self._transaction() as cur:
            cur.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
            row = cur.fetchone()
            if row is None:
                raise RunNotFound(run_id)
            record = self._row_to_run(row, [])
            apply_status(record, status, result, error, input_tokens, output_tokens)
            cur.execute(
                """
                UPDATE runs
                SET status = ?, result = ?, error = ?, input_tokens = ?,
                    output_tokens = ?, started_at = ?, completed_at = ?
                WHERE id = ?
                """,
                (
                    record.status.value,
                    record.result.model_dump_json() if record.result else None,
                    record.error,
                    record.input_tokens,
                    record.output_tokens,
                    record.started_at.isoformat() if record.started_at else None,
                    record.completed_at.isoformat() if record.completed_at else None,
                    run_id,
                ),
            )

    def _insert_deliverable(self, deliverable: Deliverable) -> None:
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO deliverables (id, workspace_id, run_id, data, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    deliverable.id,
                    deliverable.workspace_id,
                    deliverable.run_id,
                    deliverable.model_dump_json(),
                    deliverable.created_at.isoformat(),
                ),
            )

    def _toggle_item(self, deliverable_id: str, item_id: str, completed: bool) -> Deliverable:
        with self._transaction() as cur:
            cur.execute("SELECT data FROM deliverables WHERE id = ?", (deliverable_id,))
            row = cur.fetchone()
            if row is None:
                raise KeyError(f"Deliverable not found: {deliverable_id}")
            deliverable = Deliverable.model_validate_json(row["data"])
            item = next((i for i in deliverable.checklist if i.id == item_id), None)
            if item is None:
                raise KeyError(f"Checklist item not found: {item_id}")
            item.completed = completed
            cur.execute(
                "UPDATE deliverables SET data = ? WHERE id = ?",
                (deliverable.model_dump_json(), deliverable_id),
            )
            return deliverable

    # ------------------------------------------------------------------
    # Repository API
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
        await asyncio.to_thread(self._insert_run, record)
        return record

    async def get_run(self, run_id: str) -> RunRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM runs WHERE id = ?", run_id
        )
        if not row:
            return None
        progress = await asyncio.to_thread(self._load_progress, run_id)
        return self._row_to_run(row, progress)

    async def list_runs(self, workspace_id: Optional[str] = None) -> list[RunRecord]:
        if workspace_id is None:
            rows = await asyncio.to_thread(
                self._fetchall, "SELECT * FROM runs ORDER BY created_at"
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT * FROM runs WHERE workspace_id = ? ORDER BY created_at",
                workspace_id,
            )
        return [self._row_to_run(row, []) for row in rows]

    async def append_progress(self, run_id: str, entry: ProgressEntry) -> None:
        await asyncio.to_thread(self._append, run_id, entry)

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
        await asyncio.to_thread(
            self._update_status,
            run_id,
            status,
            result,
            error,
            input_tokens,
            output_tokens,
        )
        run = await self.get_run(run_id)
        assert run is not None
        return run

    async def create_deliverable(self, deliverable: Deliverable) -> None:
        await asyncio.to_thread(self._insert_deliverable, deliverable)

    async def get_deliverable(self, deliverable_id: str) -> Deliverable | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM deliverables WHERE id = ?", deliverable_id
        )
        return Deliverable.model_validate_json(row["data"]) if row else None

    async def list_deliverables(self, workspace_id: str) -> list[Deliverable]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM deliverables WHERE workspace_id = ? ORDER BY created_at DESC",
            workspace_id,
        )
        return [Deliverable.model_validate_json(r["data"]) for r in rows]

    async def update_checklist_item(
        self, deliverable_id: str, item_id: str, completed: bool
    ) -> Deliverable:
        return await asyncio.to_thread(
            self._toggle_item, deliverable_id, item_id, completed
        )
