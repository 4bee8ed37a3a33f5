import asyncio
import json

import pytest
from stubs import ScriptedModelAdapter
from typer.testing import CliRunner

import bucketcrew.cli as cli
import bucketcrew.persistence as persistence
from bucketcrew.cli import app
from bucketcrew.engine import WorkflowEngine
from bucketcrew.persistence import InMemoryRunRepository, RunStatus
from bucketcrew.contracts import ProgressEntry
from bucketcrew.retrieval import InMemoryRetriever
from bucketcrew.templates import get_template_store

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("BUCKETCREW_CONFIG", "BUCKETCREW_DATABASE_URL", "DATABASE_URL", "BUCKETCREW_TRANSPORT"):
        monkeypatch.delenv(var, raising=False)


def _setup_repo() -> InMemoryRunRepository:
    repo = InMemoryRunRepository()
    persistence._repository_instance = repo
    return repo


def test_template_list_shows_builtins():
    result = runner.invoke(app, ["template", "list"])
    assert result.exit_code == 0, result.stdout
    for template_id in ("research-sprint", "growth-plan", "sop-builder"):
        assert template_id in result.stdout


def test_template_show_prints_execution_groups():
    result = runner.invoke(app, ["template", "show", "research-sprint"])
    assert result.exit_code == 0, result.stdout
    assert "Research Sprint (research-sprint)" in result.stdout
    assert "1. plan [planner]" in result.stdout
    assert (
        "2. research_market [researcher] | research_competitors [researcher]" in result.stdout
    )

    missing = runner.invoke(app, ["template", "show", "nope"])
    assert missing.exit_code == 1
    assert "not found" in missing.stdout


def test_template_validate_reports_cycles(tmp_path):
    good = tmp_path / "good.yaml"
    good.write_text(
        "id: quick\nname: Quick\nsteps:\n"
        "  - {id: a, agent_role: planner, name: A}\n"
        "  - {id: b, agent_role: editor, name: B, depends_on: [a]}\n"
    )
    bad = tmp_path / "bad.yaml"
    bad.write_text(
        "id: loop\nname: Loop\nsteps:\n"
        "  - {id: a, agent_role: planner, name: A, depends_on: [b]}\n"
        "  - {id: b, agent_role: editor, name: B, depends_on: [a]}\n"
    )

    ok = runner.invoke(app, ["template", "validate", str(good)])
    assert ok.exit_code == 0, ok.stdout
    assert "Template quick is valid (2 steps)" in ok.stdout

    failed = runner.invoke(app, ["template", "validate", str(bad)])
    assert failed.exit_code == 1
    assert "dependency cycle" in failed.stdout

    missing = runner.invoke(app, ["template", "validate", str(tmp_path / "none.yaml")])
    assert missing.exit_code == 1


def test_run_list_and_show():
    repo = _setup_repo()
    asyncio.run(repo.create_run("run-a", "ws-1", "research-sprint"))
    asyncio.run(repo.create_run("run-b", "ws-1", "growth-plan"))
    asyncio.run(repo.set_status("run-a", RunStatus.RUNNING))
    asyncio.run(
        repo.append_progress(
            "run-a",
            ProgressEntry(
                agent="Planner", role="planner", status="completed",
                message="Planner finished.", duration_ms=1200,
            ),
        )
    )
    asyncio.run(repo.set_status("run-a", RunStatus.FAILED, error="model down"))

    listed = runner.invoke(app, ["run", "list"])
    assert listed.exit_code == 0, listed.stdout
    assert "run-a\tresearch-sprint\tfailed" in listed.stdout
    assert "run-b\tgrowth-plan\tpending" in listed.stdout

    shown = runner.invoke(app, ["run", "show", "run-a"])
    assert shown.exit_code == 0, shown.stdout
    assert "Run run-a: failed" in shown.stdout
    assert "- Planner [completed] Planner finished. (1200ms)" in shown.stdout
    assert "Error: model down" in shown.stdout

    missing = runner.invoke(app, ["run", "show", "missing-id"])
    assert missing.exit_code == 1
    assert "Run not found" in missing.stdout


def test_run_list_empty():
    _setup_repo()
    result = runner.invoke(app, ["run", "list"])
    assert result.exit_code == 0
    assert "No runs found" in result.stdout


def test_run_start_rejects_bad_input():
    _setup_repo()
    result = runner.invoke(app, ["run", "start", "research-sprint", "-w", "ws-1", "-i", "[1"])
    assert result.exit_code == 1
    assert "--input is not valid JSON" in result.stdout


def test_run_start_executes_inline(monkeypatch):
    repo = _setup_repo()
    adapter = ScriptedModelAdapter(default={"title": "Bakery Review", "executive_summary": "Grow."})

    class _Engine:
        @staticmethod
        def from_config(config=None, repository=None):
            return WorkflowEngine(
                get_template_store(config), InMemoryRetriever(), adapter, repository
            )

    monkeypatch.setattr(cli, "WorkflowEngine", _Engine)

    result = runner.invoke(
        app,
        ["run", "start", "research-sprint", "-w", "ws-1", "-i",
         json.dumps({"business_description": "Bakery"})],
    )

    assert result.exit_code == 0, result.stdout
    assert "Run ID: " in result.stdout
    assert "Deliverable: Bakery Review" in result.stdout
    runs = asyncio.run(repo.list_runs())
    assert len(runs) == 1
    assert runs[0].status == RunStatus.COMPLETED
    assert len(adapter.calls) == 5


def test_run_start_with_queue_leaves_run_pending():
    repo = _setup_repo()
    result = runner.invoke(app, ["run", "start", "growth-plan", "-w", "ws-1", "--queue"])

    assert result.exit_code == 0, result.stdout
    assert "Run queued" in result.stdout
    runs = asyncio.run(repo.list_runs())
    assert [r.status for r in runs] == [RunStatus.PENDING]
