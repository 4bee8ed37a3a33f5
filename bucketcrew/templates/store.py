"""Template lookup backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Protocol

import yaml

from ..contracts import WorkflowTemplate
from ..errors import InvalidTemplate, TemplateNotFound
from ..planner import validate_template

logger = logging.getLogger(__name__)


class TemplateStore(Protocol):
    """Resolves template ids to validated workflow templates."""

    async def get_template(self, template_id: str) -> WorkflowTemplate:
        """Return the template or raise ``TemplateNotFound``."""

    async def list_templates(self) -> List[WorkflowTemplate]:
        """Return all known templates."""


class InMemoryTemplateStore(TemplateStore):
    """Holds templates registered at construction or via ``register``."""

    def __init__(self, templates: Iterable[WorkflowTemplate] = ()) -> None:
        self._templates: Dict[str, WorkflowTemplate] = {}
        for template in templates:
            self.register(template)

    def register(self, template: WorkflowTemplate) -> None:
        """Validate ``template`` and make it available by id.

        A later registration with the same id replaces the earlier one.
        """
        validate_template(template)
        if template.id in self._templates:
            logger.info(f"Replacing workflow template {template.id}")
        self._templates[template.id] = template

    async def get_template(self, template_id: str) -> WorkflowTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    async def list_templates(self) -> List[WorkflowTemplate]:
        return list(self._templates.values())


def load_template_file(path: str | Path) -> WorkflowTemplate:
    """Parse and validate a YAML template definition."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    try:
        template = WorkflowTemplate.model_validate(data)
    except ValueError as e:
        raise InvalidTemplate(str(data.get("id", path.stem)), str(e)) from e
    validate_template(template)
    return template


def load_template_dir(directory: str | Path) -> List[WorkflowTemplate]:
    """Load every ``*.yaml``/``*.yml`` template in ``directory``."""
    directory = Path(directory)
    files = sorted([*directory.glob("*.yaml"), *directory.glob("*.yml")])
    templates = [load_template_file(f) for f in files]
    logger.info(f"Loaded {len(templates)} workflow templates from {directory}")
    return templates
