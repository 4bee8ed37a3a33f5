"""Workflow template catalog."""

from __future__ import annotations

from typing import Optional

from ..config import BucketCrewConfig, load_config
from .builtin import builtin_templates
from .store import (
    InMemoryTemplateStore,
    TemplateStore,
    load_template_dir,
    load_template_file,
)


def get_template_store(config: Optional[BucketCrewConfig] = None) -> InMemoryTemplateStore:
    """Return a store holding the built-in templates.

    Templates found under ``config.templates_path`` are added on top and
    override built-ins with the same id.
    """

    config = config or load_config()
    store = InMemoryTemplateStore(builtin_templates())
    if config.templates_path:
        for template in load_template_dir(config.templates_path):
            store.register(template)
    return store


__all__ = [
    "TemplateStore",
    "InMemoryTemplateStore",
    "builtin_templates",
    "get_template_store",
    "load_template_dir",
    "load_template_file",
]
