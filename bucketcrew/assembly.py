"""Build the final deliverable from heterogeneous step outputs.

The synthesis step's output is used field by field where present. Every
missing field falls back to what the other steps produced, so a run with
malformed or partial answers still yields a complete deliverable.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .constants import GENERIC_SUMMARY, SOURCE_FALLBACK_RELEVANCE
from .context import RunContext
from .contracts import (
    ChecklistItem,
    Deliverable,
    DeliverableContent,
    DeliverableSource,
    RetrievedChunk,
    WorkflowStep,
    utcnow,
)
from .outputs import RawOutput, StructuredOutput

logger = logging.getLogger(__name__)

Output = Union[StructuredOutput, RawOutput]
OutputList = Sequence[Tuple[str, Output]]


def is_synthesis_step(step: WorkflowStep) -> bool:
    step_id = step.id.lower()
    return step.agent_role == "editor" or step_id == "edit" or "editor" in step_id


def find_synthesis_output(ctx: RunContext) -> Optional[Output]:
    """Output of the last declared editor-like step that produced one."""
    for step in reversed(ctx.template.steps):
        if is_synthesis_step(step) and step.id in ctx.agent_outputs:
            return ctx.agent_outputs[step.id]
    return None


def collect_list_field(outputs: OutputList, name: str) -> List[Any]:
    collected: List[Any] = []
    for _, output in outputs:
        values = output.list_field(name)
        if values:
            collected.extend(values)
    return collected


def first_list_field(outputs: OutputList, name: str) -> List[Any]:
    for _, output in outputs:
        values = output.list_field(name)
        if values:
            return list(values)
    return []


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def fallback_summary(findings: Sequence[Any], recommendations: Sequence[Any]) -> str:
    if not findings and not recommendations:
        return GENERIC_SUMMARY
    parts = []
    if findings:
        parts.append(f"This analysis identified {_plural(len(findings), 'key finding')}.")
    if recommendations:
        verb = "has" if len(recommendations) == 1 else "have"
        parts.append(
            f"{_plural(len(recommendations), 'strategic recommendation')} {verb} been developed."
        )
    return " ".join(parts)


def build_checklist(raw_items: Optional[Sequence[Any]]) -> List[ChecklistItem]:
    items = []
    for raw in raw_items or []:
        text = raw.get("text") if isinstance(raw, dict) else raw
        if isinstance(text, str) and text.strip():
            items.append(ChecklistItem(text=text))
    return items


def build_sources(
    raw_sources: Optional[Sequence[Any]], chunks: Sequence[RetrievedChunk]
) -> List[DeliverableSource]:
    file_ids: Dict[str, str] = {}
    for chunk in chunks:
        file_ids.setdefault(chunk.file_name, chunk.file_id)

    sources = []
    for raw in raw_sources or []:
        if isinstance(raw, str):
            raw = {"name": raw}
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        name = str(raw["name"])
        source_type = "web" if raw.get("type") == "web" else "bucket"
        sources.append(
            DeliverableSource(
                type=source_type,
                name=name,
                url=raw.get("url"),
                file_id=file_ids.get(name) if source_type == "bucket" else None,
                relevance=str(raw.get("relevance") or ""),
            )
        )
    return sources


def sources_from_context(chunks: Sequence[RetrievedChunk]) -> List[DeliverableSource]:
    """One source per distinct file id, in first-seen order."""
    seen: Dict[str, DeliverableSource] = {}
    for chunk in chunks:
        if chunk.file_id not in seen:
            seen[chunk.file_id] = DeliverableSource(
                type="bucket",
                name=chunk.file_name,
                file_id=chunk.file_id,
                relevance=SOURCE_FALLBACK_RELEVANCE,
            )
    return list(seen.values())


def default_title(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"{now.month}/{now.day}/{now.year} Consulting Deliverable"


def assemble_deliverable(ctx: RunContext) -> Deliverable:
    """Assemble the deliverable for a run whose steps have all completed."""
    outputs = ctx.completed_outputs()
    synthesis = find_synthesis_output(ctx)
    if synthesis is None or isinstance(synthesis, RawOutput):
        logger.warning(
            f"Run {ctx.run_id}: no structured synthesis output, assembling from all steps"
        )

    def pick(name: str) -> Optional[List[Any]]:
        return synthesis.list_field(name) if synthesis is not None else None

    findings = pick("findings")
    if findings is None:
        findings = collect_list_field(outputs, "findings")
    recommendations = pick("recommendations")
    if recommendations is None:
        recommendations = collect_list_field(outputs, "recommendations")
    plan = pick("plan_30_60_90")
    if plan is None:
        plan = first_list_field(outputs, "plan_30_60_90")
    risks = pick("risks_assumptions")
    if risks is None:
        risks = collect_list_field(outputs, "risks_assumptions")

    summary = synthesis.text_field("executive_summary") if synthesis else None
    if summary is None:
        summary = fallback_summary(findings, recommendations)

    raw_sources = None
    if synthesis is not None:
        raw_sources = synthesis.list_field("sources_used") or synthesis.list_field("sources")
    sources = build_sources(raw_sources, ctx.context)
    if not sources:
        sources = sources_from_context(ctx.context)

    title = synthesis.text_field("title") if synthesis else None

    return Deliverable(
        workspace_id=ctx.workspace_id,
        run_id=ctx.run_id,
        title=title or default_title(),
        content=DeliverableContent(
            executive_summary=summary,
            findings=findings,
            recommendations=recommendations,
            plan_30_60_90=plan,
            risks_assumptions=risks,
        ),
        checklist=build_checklist(synthesis.list_field("checklist") if synthesis else None),
        sources=sources,
    )
