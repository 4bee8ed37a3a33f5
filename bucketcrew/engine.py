"""Top-level coordinator for workflow runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .agent import StepExecutor
from .assembly import assemble_deliverable
from .config import BucketCrewConfig, load_config
from .context import RunContext
from .contracts import Deliverable, RetrievedChunk, WorkflowStep
from .errors import PersistenceFailure
from .llm import ModelAdapter, get_model_adapter
from .persistence import RunRepository, get_repository
from .planner import order_steps
from .progress import ProgressRecorder
from .retrieval import Retriever, get_retriever
from .templates import TemplateStore, get_template_store

logger = logging.getLogger(__name__)


def build_retrieval_query(user_input: Dict[str, Any]) -> str:
    """Join the string-valued input fields into one free-text query."""
    return " ".join(v for v in user_input.values() if isinstance(v, str))


class WorkflowEngine:
    """Executes workflow templates end to end.

    ``execute_workflow`` is the single entry point. It always leaves the run
    record in a terminal state: ``completed`` with the deliverable attached,
    ``failed`` with the error message, or ``cancelled``.
    """

    def __init__(
        self,
        templates: TemplateStore,
        retriever: Retriever,
        model_adapter: ModelAdapter,
        repository: RunRepository,
        config: Optional[BucketCrewConfig] = None,
    ) -> None:
        self.templates = templates
        self.retriever = retriever
        self.repository = repository
        self.config = config or BucketCrewConfig()
        self.recorder = ProgressRecorder(repository)
        self.executor = StepExecutor(
            model_adapter, self.recorder, self.config.model.role_modes
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[BucketCrewConfig] = None,
        repository: Optional[RunRepository] = None,
    ) -> "WorkflowEngine":
        """Wire an engine from the configured backends."""
        config = config or load_config()
        return cls(
            templates=get_template_store(config),
            retriever=get_retriever(config),
            model_adapter=get_model_adapter(config),
            repository=repository or get_repository(),
            config=config,
        )

    async def retrieve_context(
        self,
        workspace_id: str,
        user_input: Dict[str, Any],
        file_ids: Sequence[str] = (),
    ) -> List[RetrievedChunk]:
        """Fetch document context for a run, degrading instead of failing."""
        query = build_retrieval_query(user_input)
        if not query.strip():
            logger.info(f"Workspace {workspace_id}: empty query, skipping retrieval")
            return []

        top_k = self.config.retrieval.top_k
        scope = list(file_ids) or None
        try:
            return await self.retriever.retrieve(workspace_id, query, scope, top_k)
        except Exception as e:
            logger.warning(
                f"Retrieval degraded for workspace {workspace_id}: {e}; "
                "falling back to unranked chunks"
            )

        try:
            chunks = await self.retriever.recent_chunks(workspace_id, scope, top_k)
        except Exception as e:
            logger.warning(
                f"Unranked retrieval failed for workspace {workspace_id}: {e}; "
                "continuing without document context"
            )
            return []

        similarity = self.config.retrieval.fallback_similarity
        return [c.model_copy(update={"similarity": similarity}) for c in chunks]

    async def run_group(self, ctx: RunContext, group: Sequence[WorkflowStep]) -> None:
        """Run one execution group; concurrent members fail fast together."""
        if len(group) == 1:
            await self.executor.execute(ctx, group[0])
            return

        tasks = [
            asyncio.create_task(
                self.executor.execute(ctx, step), name=f"{ctx.run_id}:{step.id}"
            )
            for step in group
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _finalize_failure(
        self, run_id: str, error: BaseException, ctx: Optional[RunContext]
    ) -> None:
        tokens: Dict[str, Any] = {}
        if ctx is not None:
            tokens = {"input_tokens": ctx.input_tokens, "output_tokens": ctx.output_tokens}
        try:
            if isinstance(error, asyncio.CancelledError):
                await self.recorder.mark_cancelled(run_id)
            else:
                await self.recorder.mark_failed(run_id, str(error) or repr(error), **tokens)
        except Exception:
            logger.exception(f"Could not record terminal status for run {run_id}")

    async def execute_workflow(
        self,
        run_id: str,
        workspace_id: str,
        template_id: str,
        user_input: Optional[Dict[str, Any]] = None,
        file_ids: Optional[Sequence[str]] = None,
    ) -> Deliverable:
        """Run ``template_id`` for an existing ``pending`` run record.

        Raises:
            InvalidTemplate: the template is unknown or its graph is invalid.
            StepInvocationFailure: a step's model call raised.
            PersistenceFailure: the deliverable could not be stored.
        """
        user_input = dict(user_input or {})
        file_ids = list(file_ids or [])
        ctx: Optional[RunContext] = None
        logger.info(f"Run {run_id}: executing template {template_id}")

        try:
            template = await self.templates.get_template(template_id)
            groups = order_steps(template.steps, strict=True, template_id=template.id)

            context = await self.retrieve_context(workspace_id, user_input, file_ids)
            ctx = RunContext(
                run_id=run_id,
                workspace_id=workspace_id,
                template=template,
                user_input=user_input,
                context=context,
            )
            await self.recorder.mark_running(run_id)

            for index, group in enumerate(groups):
                logger.debug(
                    f"Run {run_id}: group {index + 1}/{len(groups)} "
                    f"{[step.id for step in group]}"
                )
                await self.run_group(ctx, group)

            deliverable = assemble_deliverable(ctx)
            try:
                await self.repository.create_deliverable(deliverable)
            except Exception as e:
                raise PersistenceFailure(f"Failed to save deliverable: {e}") from e

            await self.recorder.mark_completed(
                run_id, deliverable, ctx.input_tokens, ctx.output_tokens
            )
            return deliverable
        except asyncio.CancelledError as e:
            await self._finalize_failure(run_id, e, ctx)
            raise
        except Exception as e:
            await self._finalize_failure(run_id, e, ctx)
            raise
