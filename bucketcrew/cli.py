"""Command line interface for bucketcrew."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import List, Optional

import typer

from .config import load_config
from .contracts import RunRequest
from .dispatch import RunDispatcher
from .engine import WorkflowEngine
from .errors import BucketCrewError, RunNotFound
from .execute import RunWorker
from .persistence import get_repository
from .planner import order_steps
from .status import read_run_status, stream_run
from .templates import get_template_store, load_template_file
from .transports import get_transport

app = typer.Typer(help="CLI for BucketCrew workflow runs")

template_app = typer.Typer(help="Inspect workflow templates")
run_app = typer.Typer(help="Start and monitor runs")
worker_app = typer.Typer(help="Run queue workers")

app.add_typer(template_app, name="template")
app.add_typer(run_app, name="run")
app.add_typer(worker_app, name="worker")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for bucketcrew"),
) -> None:
    """BucketCrew CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@template_app.command("list")
def template_list() -> None:
    """List the available workflow templates."""
    store = get_template_store(load_config())
    for template in asyncio.run(store.list_templates()):
        typer.echo(f"{template.id}\t{template.name}\t{len(template.steps)} steps")


@template_app.command("show")
def template_show(template_id: str) -> None:
    """
    Show a template and the groups its steps execute in.

    Example:
        bucketcrew template show research-sprint
        # Output: Research Sprint (research-sprint)
        #         1. plan [planner]
        #         2. research_market [researcher] | research_competitors [researcher]
    """
    store = get_template_store(load_config())
    try:
        template = asyncio.run(store.get_template(template_id))
    except BucketCrewError as exc:
        _fail(str(exc))
    typer.echo(f"{template.name} ({template.id})")
    if template.description:
        typer.echo(template.description)
    groups = order_steps(template.steps, strict=True, template_id=template.id)
    for index, group in enumerate(groups, start=1):
        members = " | ".join(f"{step.id} [{step.agent_role}]" for step in group)
        typer.echo(f"{index}. {members}")


@template_app.command("validate")
def template_validate(path: Path) -> None:
    """Validate a YAML template file."""
    try:
        template = load_template_file(path)
    except FileNotFoundError:
        _fail(f"File not found: {path}")
    except BucketCrewError as exc:
        _fail(str(exc))
    typer.echo(f"Template {template.id} is valid ({len(template.steps)} steps)")


@run_app.command("start")
def run_start(
    template_id: str,
    workspace: str = typer.Option(..., "--workspace", "-w", help="Workspace id"),
    input_json: str = typer.Option("{}", "--input", "-i", help="User input as JSON"),
    file_id: Optional[List[str]] = typer.Option(None, "--file-id", "-f"),
    queue: bool = typer.Option(False, "--queue", help="Hand the run to a worker"),
) -> None:
    """
    Create a run and execute it, or queue it for a worker.

    Example:
        bucketcrew run start research-sprint -w acme --input '{"business_description": "Bakery"}'
        bucketcrew run start growth-plan -w acme --queue
    """
    try:
        user_input = json.loads(input_json)
    except json.JSONDecodeError as exc:
        _fail(f"--input is not valid JSON: {exc}")
    if not isinstance(user_input, dict):
        _fail("--input must be a JSON object")

    config = load_config()
    repository = get_repository()
    run_id = str(uuid.uuid4())
    file_ids = list(file_id or [])
    asyncio.run(
        repository.create_run(run_id, workspace, template_id, user_input, file_ids)
    )
    typer.echo(f"Run ID: {run_id}")

    if queue:
        request = RunRequest(
            run_id=run_id,
            workspace_id=workspace,
            template_id=template_id,
            user_input=user_input,
            file_ids=file_ids,
        )
        transport = get_transport(config=config)
        dispatcher = RunDispatcher(queue=config.transport.queue)
        asyncio.run(dispatcher.submit(transport, request))
        typer.echo("Run queued. Start a worker with: bucketcrew worker start")
        return

    engine = WorkflowEngine.from_config(config, repository=repository)
    try:
        deliverable = asyncio.run(
            engine.execute_workflow(run_id, workspace, template_id, user_input, file_ids)
        )
    except Exception as exc:
        _fail(f"Run failed: {exc}")
    typer.echo(f"Deliverable: {deliverable.title}")
    typer.echo(deliverable.content.executive_summary)


@run_app.command("list")
def run_list(
    workspace: Optional[str] = typer.Option(None, "--workspace", "-w"),
) -> None:
    """List runs with their status."""
    repository = get_repository()
    runs = asyncio.run(repository.list_runs(workspace))
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        typer.echo(f"{run.id}\t{run.template_id}\t{run.status.value}")


@run_app.command("show")
def run_show(run_id: str) -> None:
    """Show status, progress log and outcome of a run."""
    repository = get_repository()
    try:
        view = asyncio.run(read_run_status(repository, run_id))
    except RunNotFound:
        _fail("Run not found")
    typer.echo(f"Run {view.id}: {view.status.value}")
    for entry in view.progress:
        duration = f" ({entry.duration_ms}ms)" if entry.duration_ms is not None else ""
        typer.echo(f"- {entry.agent} [{entry.status}] {entry.message}{duration}")
    if view.error:
        typer.echo(f"Error: {view.error}")
    if view.result:
        typer.echo(f"Deliverable: {view.result.title}")
    typer.echo(f"Tokens: in={view.input_tokens} out={view.output_tokens}")


@run_app.command("watch")
def run_watch(
    run_id: str,
    poll_interval: Optional[float] = typer.Option(None, help="Seconds between polls"),
    lifespan: Optional[float] = typer.Option(None, help="Maximum seconds to watch"),
) -> None:
    """Stream progress of a run until it finishes."""
    config = load_config()
    repository = get_repository()

    async def _watch() -> Optional[str]:
        async for update in stream_run(
            repository,
            run_id,
            poll_interval=poll_interval or config.stream.poll_interval,
            lifespan=lifespan or config.stream.lifespan,
        ):
            for entry in update.new_entries:
                typer.echo(f"- {entry.agent} [{entry.status}] {entry.message}")
            if update.status is not None and update.status.is_terminal:
                typer.echo(f"Run {run_id}: {update.status.value}")
            if update.error:
                return update.error
        return None

    error = asyncio.run(_watch())
    if error:
        _fail(error)


@worker_app.command("start")
def worker_start(
    lifespan: Optional[float] = typer.Option(
        None, help="Worker timeout in seconds (default: run indefinitely)"
    ),
) -> None:
    """Consume queued runs and execute them."""
    config = load_config()
    transport = get_transport(config=config)
    engine = WorkflowEngine.from_config(config, repository=get_repository())
    worker = RunWorker(transport, engine, queue=config.transport.queue)
    typer.echo(f"Starting worker on queue: {config.transport.queue}")
    asyncio.run(worker.start(lifespan=lifespan))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
