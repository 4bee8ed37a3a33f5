"""Run status reads and progress streaming."""

import asyncio

import pytest

from bucketcrew.contracts import Deliverable, DeliverableContent, ProgressEntry
from bucketcrew.errors import RunNotFound
from bucketcrew.persistence import InMemoryRunRepository, RunStatus
from bucketcrew.status import (
    RUN_NOT_FOUND_ERROR,
    STREAM_TIMEOUT_ERROR,
    read_run_status,
    stream_run,
)


def _entry(agent: str, status: str = "running") -> ProgressEntry:
    return ProgressEntry(agent=agent, role="researcher", status=status, message=f"{agent} {status}")


def _deliverable(run_id: str) -> Deliverable:
    return Deliverable(
        workspace_id="ws-1",
        run_id=run_id,
        title="Report",
        content=DeliverableContent(executive_summary="Done."),
    )


async def _collect(stream):
    return [update async for update in stream]


@pytest.mark.asyncio
async def test_read_is_idempotent_without_writes():
    repo = InMemoryRunRepository()
    await repo.create_run("run-1", "ws-1", "research-sprint")
    await repo.set_status("run-1", RunStatus.RUNNING)
    await repo.append_progress("run-1", _entry("Planner"))

    first = await read_run_status(repo, "run-1")
    second = await read_run_status(repo, "run-1")

    assert first == second
    assert first.status == RunStatus.RUNNING
    assert [e.agent for e in first.progress] == ["Planner"]


@pytest.mark.asyncio
async def test_read_unknown_run_raises():
    with pytest.raises(RunNotFound):
        await read_run_status(InMemoryRunRepository(), "missing")


@pytest.mark.asyncio
async def test_completed_run_exposes_result_and_hides_error():
    repo = InMemoryRunRepository()
    await repo.create_run("run-1", "ws-1", "t")
    await repo.set_status("run-1", RunStatus.RUNNING)
    await repo.set_status("run-1", RunStatus.COMPLETED, result=_deliverable("run-1"))

    view = await read_run_status(repo, "run-1")

    assert view.result.title == "Report"
    assert view.error is None
    assert view.completed_at is not None


@pytest.mark.asyncio
async def test_stream_of_finished_run_yields_single_terminal_update():
    repo = InMemoryRunRepository()
    await repo.create_run("run-1", "ws-1", "t")
    await repo.set_status("run-1", RunStatus.RUNNING)
    await repo.append_progress("run-1", _entry("Planner"))
    await repo.set_status("run-1", RunStatus.FAILED, error="boom")

    updates = await _collect(stream_run(repo, "run-1", poll_interval=0.01, lifespan=1))

    assert len(updates) == 1
    assert updates[0].status == RunStatus.FAILED
    assert updates[0].error == "boom"
    assert [e.agent for e in updates[0].new_entries] == ["Planner"]


@pytest.mark.asyncio
async def test_stream_delivers_only_new_entries_until_terminal():
    repo = InMemoryRunRepository()
    await repo.create_run("run-1", "ws-1", "t")
    await repo.set_status("run-1", RunStatus.RUNNING)

    async def writer():
        await asyncio.sleep(0.03)
        await repo.append_progress("run-1", _entry("Planner"))
        await asyncio.sleep(0.05)
        await repo.append_progress("run-1", _entry("Planner", "completed"))
        await repo.append_progress("run-1", _entry("Editor"))
        await asyncio.sleep(0.05)
        await repo.set_status("run-1", RunStatus.COMPLETED, result=_deliverable("run-1"))

    task = asyncio.create_task(writer())
    updates = await _collect(stream_run(repo, "run-1", poll_interval=0.01, lifespan=5))
    await task

    delivered = [(e.agent, e.status) for u in updates for e in u.new_entries]
    assert delivered == [
        ("Planner", "running"),
        ("Planner", "completed"),
        ("Editor", "running"),
    ]
    assert all(u.new_entries or u.status.is_terminal for u in updates)
    assert updates[-1].status == RunStatus.COMPLETED
    assert updates[-1].result.title == "Report"
    assert all(u.result is None for u in updates[:-1])


@pytest.mark.asyncio
async def test_stream_unknown_run_reports_not_found():
    updates = await _collect(
        stream_run(InMemoryRunRepository(), "missing", poll_interval=0.01, lifespan=1)
    )
    assert [u.error for u in updates] == [RUN_NOT_FOUND_ERROR]


@pytest.mark.asyncio
async def test_stream_times_out_on_silent_run():
    repo = InMemoryRunRepository()
    await repo.create_run("run-1", "ws-1", "t")

    updates = await _collect(stream_run(repo, "run-1", poll_interval=0.01, lifespan=0.05))

    assert [u.error for u in updates] == [STREAM_TIMEOUT_ERROR]
    assert updates[0].status is None


class _BrokenOnceRepository(InMemoryRunRepository):
    def __init__(self):
        super().__init__()
        self.failures = 1

    async def get_run(self, run_id):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("connection reset")
        return await super().get_run(run_id)


@pytest.mark.asyncio
async def test_stream_survives_transient_read_errors():
    repo = _BrokenOnceRepository()
    await repo.create_run("run-1", "ws-1", "t")
    await repo.set_status("run-1", RunStatus.RUNNING)
    await repo.set_status("run-1", RunStatus.CANCELLED)

    updates = await _collect(stream_run(repo, "run-1", poll_interval=0.01, lifespan=1))

    assert [u.status for u in updates] == [RunStatus.CANCELLED]
