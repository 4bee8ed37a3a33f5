"""End-to-end workflow runs against in-memory collaborators."""

import asyncio

import pytest
from stubs import (
    FailingDeliverableRepository,
    FailingRetriever,
    FlakyProgressRepository,
    ScriptedModelAdapter,
    make_chunk,
    make_step,
    make_template,
    sequential_template,
)

from bucketcrew.agent import ROLE_INSTRUCTIONS
from bucketcrew.agent.executor import NO_DOCUMENTS_NOTICE
from bucketcrew.engine import WorkflowEngine, build_retrieval_query
from bucketcrew.errors import PersistenceFailure, StepInvocationFailure, TemplateNotFound
from bucketcrew.persistence import InMemoryRunRepository, RunStatus
from bucketcrew.retrieval import InMemoryRetriever
from bucketcrew.templates import InMemoryTemplateStore, builtin_templates

BAKERY_INPUT = {
    "business_description": "Neighbourhood bakery selling bread and pastries",
    "target_market": "Local families and cafes",
    "focus_areas": ["market"],
}


def _bakery_chunks():
    return [
        make_chunk("c1", "file-sales", "sales.csv", "Bakery revenue grew 12% with cafes"),
        make_chunk("c2", "file-plan", "plan.pdf", "Families buy pastries on weekends"),
        make_chunk("c3", "file-sales", "sales.csv", "Bread margins by month", chunk_index=1),
    ]


async def _engine(adapter, templates=None, retriever=None, repository=None, run_id="run-1"):
    repository = repository or InMemoryRunRepository()
    store = InMemoryTemplateStore(templates or [sequential_template(), *builtin_templates()])
    engine = WorkflowEngine(store, retriever or InMemoryRetriever(), adapter, repository)
    return engine, repository


class SlowStepAdapter(ScriptedModelAdapter):
    """Blocks on ``slow`` instructions until cancelled.

    Other steps wait until the slow step is in flight.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.slow_started = asyncio.Event()
        self.slow_cancelled = False

    async def invoke(self, instructions, message, mode):
        if instructions == "slow":
            self.slow_started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.slow_cancelled = True
                raise
        await self.slow_started.wait()
        return await super().invoke(instructions, message, mode)


@pytest.mark.asyncio
async def test_research_sprint_produces_deliverable():
    adapter = ScriptedModelAdapter(
        {
            ROLE_INSTRUCTIONS["planner"]: {"research_questions": ["Who buys?"]},
            ROLE_INSTRUCTIONS["researcher"]: {"findings": [{"title": "Cafes drive growth"}]},
            ROLE_INSTRUCTIONS["strategist"]: {"recommendations": [{"title": "Sell wholesale"}]},
            ROLE_INSTRUCTIONS["editor"]: "```json\n"
            '{"title": "Bakery Market Sprint", "executive_summary": "Cafes are the opportunity.",'
            ' "findings": [{"title": "Cafes drive growth"}], "checklist": [{"text": "Call 3 cafes"}]}'
            "\n```",
        }
    )
    engine, repo = await _engine(adapter, retriever=InMemoryRetriever(_bakery_chunks()))
    await repo.create_run("run-1", "ws-1", "research-sprint", BAKERY_INPUT)

    deliverable = await engine.execute_workflow("run-1", "ws-1", "research-sprint", BAKERY_INPUT)

    assert deliverable.title == "Bakery Market Sprint"
    assert deliverable.content.executive_summary == "Cafes are the opportunity."
    assert deliverable.content.recommendations == [{"title": "Sell wholesale"}]
    assert [c.text for c in deliverable.checklist] == ["Call 3 cafes"]
    assert sorted((s.name, s.file_id) for s in deliverable.sources) == [
        ("plan.pdf", "file-plan"),
        ("sales.csv", "file-sales"),
    ]

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.COMPLETED
    assert record.result == deliverable
    assert record.error is None
    assert record.started_at is not None and record.completed_at is not None
    assert record.input_tokens == 50
    assert record.output_tokens == 25
    assert [d.id for d in await repo.list_deliverables("ws-1")] == [deliverable.id]

    statuses = [(e.agent, e.status) for e in record.progress]
    assert len(statuses) == 10
    assert statuses[:2] == [("Planner", "running"), ("Planner", "completed")]
    assert statuses[-2:] == [("Editor", "running"), ("Editor", "completed")]
    assert all(e.duration_ms is not None for e in record.progress if e.status == "completed")
    assert record.progress[0].message == "Planner is scoping the research plan..."


@pytest.mark.asyncio
async def test_each_step_sees_its_dependencies_outputs():
    seen = {}

    def capture(step_id, payload):
        def respond(message):
            seen[step_id] = message
            return payload

        return respond

    adapter = ScriptedModelAdapter(
        {
            "first-instructions": capture("first", {"findings": ["f1"]}),
            "second-instructions": capture("second", {"findings": ["f2"]}),
            "third-instructions": capture("third", {"recommendations": ["r3"]}),
        }
    )
    engine, repo = await _engine(adapter)
    await repo.create_run("run-1", "ws-1", "three-steps")

    deliverable = await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    assert "=== PREVIOUS AGENT OUTPUTS ===" not in seen["first"]
    assert "--- first ---" in seen["second"]
    assert "--- first ---" in seen["third"] and "--- second ---" in seen["third"]
    assert "goal: grow" in seen["first"]
    assert NO_DOCUMENTS_NOTICE in seen["first"]
    assert deliverable.content.findings == ["f1", "f2"]
    assert deliverable.content.recommendations == ["r3"]


@pytest.mark.asyncio
async def test_parallel_members_do_not_see_each_other():
    template = make_template(
        [
            make_step("plan", "planner", instructions="plan"),
            make_step("r1", instructions="r1", depends_on=["plan"], parallel_group="research"),
            make_step("r2", instructions="r2", depends_on=["plan"], parallel_group="research"),
            make_step("edit", "editor", instructions="edit", depends_on=["r1", "r2"]),
        ],
        "parallel",
    )
    messages = {}

    def remember(key):
        def respond(message):
            messages[key] = message
            return {"findings": [key]}

        return respond

    adapter = ScriptedModelAdapter(
        {key: remember(key) for key in ("plan", "r1", "r2", "edit")}, delay=0.02
    )
    engine, repo = await _engine(adapter, templates=[template])
    await repo.create_run("run-1", "ws-1", "parallel")

    await engine.execute_workflow("run-1", "ws-1", "parallel", {"goal": "grow"})

    assert "--- r2 ---" not in messages["r1"]
    assert "--- r1 ---" not in messages["r2"]
    assert "--- r1 ---" in messages["edit"] and "--- r2 ---" in messages["edit"]


@pytest.mark.asyncio
async def test_failure_mid_run_stops_and_records_error():
    adapter = ScriptedModelAdapter(
        {"second-instructions": RuntimeError("rate limited")}, default={"findings": ["x"]}
    )
    engine, repo = await _engine(adapter)
    await repo.create_run("run-1", "ws-1", "three-steps")

    with pytest.raises(StepInvocationFailure) as exc_info:
        await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    assert exc_info.value.step_id == "second"
    assert [c["instructions"] for c in adapter.calls] == [
        "first-instructions",
        "second-instructions",
    ]
    record = await repo.get_run("run-1")
    assert record.status == RunStatus.FAILED
    assert "rate limited" in record.error
    assert record.result is None
    assert record.input_tokens == 10
    assert await repo.list_deliverables("ws-1") == []
    assert [(e.agent, e.status) for e in record.progress] == [
        ("First", "running"),
        ("First", "completed"),
        ("Second", "running"),
        ("Second", "error"),
    ]
    assert record.progress[-1].message == "Second failed: rate limited"


@pytest.mark.asyncio
async def test_parallel_failure_cancels_sibling():
    template = make_template(
        [
            make_step("fast", instructions="fast", parallel_group="research"),
            make_step("slow", instructions="slow", parallel_group="research"),
            make_step("edit", "editor", instructions="edit", depends_on=["fast", "slow"]),
        ],
        "race",
    )

    adapter = SlowStepAdapter({"fast": ValueError("bad request")})
    engine, repo = await _engine(adapter, templates=[template])
    await repo.create_run("run-1", "ws-1", "race")

    with pytest.raises(StepInvocationFailure):
        await asyncio.wait_for(
            engine.execute_workflow("run-1", "ws-1", "race", {"goal": "grow"}), timeout=5
        )

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.FAILED
    assert adapter.slow_cancelled
    assert "edit" not in [c["instructions"] for c in adapter.calls]
    assert ("Slow", "completed") not in [(e.agent, e.status) for e in record.progress]


@pytest.mark.asyncio
async def test_cancelling_a_run_marks_it_cancelled():
    template = make_template([make_step("slow", instructions="slow")], "stuck")
    adapter = SlowStepAdapter()
    engine, repo = await _engine(adapter, templates=[template])
    await repo.create_run("run-1", "ws-1", "stuck")

    task = asyncio.create_task(engine.execute_workflow("run-1", "ws-1", "stuck", {"goal": "x"}))
    await asyncio.wait_for(adapter.slow_started.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.CANCELLED
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_retrieval_failure_falls_back_to_unranked_chunks():
    retriever = FailingRetriever(fallback=[make_chunk("c1", "file-1", "notes.txt", similarity=0.2)])
    adapter = ScriptedModelAdapter()
    engine, repo = await _engine(adapter, retriever=retriever)
    await repo.create_run("run-1", "ws-1", "three-steps")

    deliverable = await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    assert retriever.fallback_calls == 1
    assert "notes.txt (chunk 0, relevance: 1.000)" in adapter.calls[0]["message"]
    assert [s.file_id for s in deliverable.sources] == ["file-1"]
    assert (await repo.get_run("run-1")).status == RunStatus.COMPLETED


@pytest.mark.asyncio
async def test_total_retrieval_failure_runs_without_documents():
    adapter = ScriptedModelAdapter()
    engine, repo = await _engine(adapter, retriever=FailingRetriever(fail_fallback=True))
    await repo.create_run("run-1", "ws-1", "three-steps")

    deliverable = await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    assert NO_DOCUMENTS_NOTICE in adapter.calls[0]["message"]
    assert deliverable.sources == []


@pytest.mark.asyncio
async def test_empty_query_skips_retrieval():
    retriever = FailingRetriever()
    engine, repo = await _engine(ScriptedModelAdapter(), retriever=retriever)
    await repo.create_run("run-1", "ws-1", "three-steps")

    await engine.execute_workflow("run-1", "ws-1", "three-steps", {"count": 3})

    assert retriever.fallback_calls == 0
    assert build_retrieval_query({"a": "bakery", "b": 3, "c": "cafes"}) == "bakery cafes"


@pytest.mark.asyncio
async def test_deliverable_write_failure_fails_run():
    engine, repo = await _engine(
        ScriptedModelAdapter(), repository=FailingDeliverableRepository()
    )
    await repo.create_run("run-1", "ws-1", "three-steps")

    with pytest.raises(PersistenceFailure):
        await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.FAILED
    assert record.error.startswith("Failed to save deliverable:")
    assert record.result is None


@pytest.mark.asyncio
async def test_progress_write_failures_do_not_fail_the_run():
    engine, repo = await _engine(ScriptedModelAdapter(), repository=FlakyProgressRepository())
    await repo.create_run("run-1", "ws-1", "three-steps")

    await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.COMPLETED
    assert record.progress == []


@pytest.mark.asyncio
async def test_unknown_template_fails_run():
    adapter = ScriptedModelAdapter()
    engine, repo = await _engine(adapter)
    await repo.create_run("run-1", "ws-1", "missing")

    with pytest.raises(TemplateNotFound):
        await engine.execute_workflow("run-1", "ws-1", "missing", {"goal": "grow"})

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.FAILED
    assert "not found" in record.error
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_non_json_replies_still_complete_the_run():
    adapter = ScriptedModelAdapter(default="not json")
    engine, repo = await _engine(adapter)
    await repo.create_run("run-1", "ws-1", "three-steps")

    deliverable = await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    record = await repo.get_run("run-1")
    assert record.status == RunStatus.COMPLETED
    assert record.error is None
    assert deliverable.content.findings == []
    assert deliverable.content.executive_summary == (
        "Analysis complete. Please review the detailed findings below."
    )
    assert '"raw_text": "not json"' in adapter.calls[-1]["message"]


@pytest.mark.asyncio
async def test_unparseable_number_reply_still_completes_the_run():
    engine, repo = await _engine(ScriptedModelAdapter(default="1" * 5000))
    await repo.create_run("run-1", "ws-1", "three-steps")

    await engine.execute_workflow("run-1", "ws-1", "three-steps", {"goal": "grow"})

    assert (await repo.get_run("run-1")).status == RunStatus.COMPLETED
