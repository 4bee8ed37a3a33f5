"""Execution ordering for workflow steps.

Steps sharing a ``parallel_group`` run together; every other step forms a
group of its own. Groups are emitted once all dependencies of all their
members have been emitted in an earlier group.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Sequence

from .contracts import WorkflowStep, WorkflowTemplate
from .errors import InvalidTemplate

logger = logging.getLogger(__name__)


def _partition(steps: Sequence[WorkflowStep]) -> Dict[str, List[WorkflowStep]]:
    """Group steps by ``parallel_group`` preserving first-seen order."""
    groups: Dict[str, List[WorkflowStep]] = {}
    solo_index = 0
    for step in steps:
        key = step.parallel_group
        if not key:
            key = f"__solo_{solo_index}"
            solo_index += 1
        groups.setdefault(key, []).append(step)
    return groups


def order_steps(
    steps: Sequence[WorkflowStep],
    strict: bool = False,
    template_id: str = "<anonymous>",
) -> List[List[WorkflowStep]]:
    """Arrange ``steps`` into sequentially executed groups.

    At most ``group_count + 1`` scan passes are made. Groups that are still
    unsatisfied after that (a cycle, or a dependency on an unknown step id)
    raise ``InvalidTemplate`` when ``strict`` is set; otherwise they are
    appended in encounter order so execution can still make progress.
    """
    groups = _partition(steps)
    remaining = list(groups)
    ordered: List[List[WorkflowStep]] = []
    emitted: set[str] = set()

    max_passes = len(groups) + 1
    passes = 0
    while remaining and passes < max_passes:
        passes += 1
        for key in list(remaining):
            members = groups[key]
            if all(dep in emitted for step in members for dep in step.depends_on):
                ordered.append(members)
                emitted.update(step.id for step in members)
                remaining.remove(key)

    if remaining:
        stuck = [step.id for key in remaining for step in groups[key]]
        if strict:
            raise InvalidTemplate(template_id, "unsatisfiable dependencies", stuck)
        logger.warning(
            f"Template {template_id}: dependencies of {stuck} never resolved; "
            "running them last without ordering guarantees"
        )
        ordered.extend(groups[key] for key in remaining)

    return ordered


def _find_cycle_members(steps: Sequence[WorkflowStep]) -> List[str]:
    """Return ids of steps on or behind a dependency cycle (Kahn's algorithm)."""
    in_degree = {step.id: len(set(step.depends_on)) for step in steps}
    dependents: Dict[str, List[str]] = defaultdict(list)
    for step in steps:
        for dep in set(step.depends_on):
            dependents[dep].append(step.id)

    queue = [step.id for step in steps if in_degree[step.id] == 0]
    resolved: set[str] = set()
    while queue:
        current = queue.pop(0)
        resolved.add(current)
        for child in dependents[current]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return [step.id for step in steps if step.id not in resolved]


def validate_template(template: WorkflowTemplate) -> None:
    """Reject templates whose step graph cannot be executed in order.

    Raises:
        InvalidTemplate: on empty templates, duplicate step ids, dependencies
            on unknown steps, dependency cycles, or parallel groups whose
            members wait on each other through other steps.
    """
    if not template.steps:
        raise InvalidTemplate(template.id, "template has no steps")

    seen: set[str] = set()
    duplicates: List[str] = []
    for step in template.steps:
        if step.id in seen:
            duplicates.append(step.id)
        seen.add(step.id)
    if duplicates:
        raise InvalidTemplate(template.id, "duplicate step ids", duplicates)

    unknown = [
        step.id
        for step in template.steps
        if any(dep not in seen for dep in step.depends_on)
    ]
    if unknown:
        raise InvalidTemplate(template.id, "depends on unknown steps", unknown)

    cyclic = _find_cycle_members(template.steps)
    if cyclic:
        raise InvalidTemplate(template.id, "dependency cycle", cyclic)

    order_steps(template.steps, strict=True, template_id=template.id)
