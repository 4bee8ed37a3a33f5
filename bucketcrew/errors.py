"""Exceptions raised by the bucketcrew orchestration core."""

from __future__ import annotations

from typing import Iterable, Optional


class BucketCrewError(Exception):
    """Base class for all bucketcrew errors."""


class InvalidTemplate(BucketCrewError):
    """Template is missing or its step graph cannot be executed."""

    def __init__(
        self,
        template_id: str,
        reason: str,
        step_ids: Optional[Iterable[str]] = None,
    ) -> None:
        self.template_id = template_id
        self.reason = reason
        self.step_ids = list(step_ids or [])
        message = f"Invalid workflow template '{template_id}': {reason}"
        if self.step_ids:
            message += f" (steps: {', '.join(self.step_ids)})"
        super().__init__(message)


class TemplateNotFound(InvalidTemplate):
    """No template is registered under the requested id."""

    def __init__(self, template_id: str) -> None:
        super().__init__(template_id, "not found")


class RetrievalError(BucketCrewError):
    """Retrieval backend is unavailable or returned an error."""


class StepInvocationFailure(BucketCrewError):
    """The model adapter raised while a workflow step was running."""

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(f"Step '{step_id}' failed: {message}")


class PersistenceFailure(BucketCrewError):
    """The assembled deliverable could not be stored."""


class RunNotFound(BucketCrewError):
    """Run id is unknown to the repository."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class InvalidRunTransition(BucketCrewError):
    """A status write would break the run lifecycle."""

    def __init__(self, run_id: str, current: str, target: str) -> None:
        self.run_id = run_id
        self.current = current
        self.target = target
        super().__init__(
            f"Run {run_id} cannot move from '{current}' to '{target}'"
        )


__all__ = [
    "BucketCrewError",
    "InvalidTemplate",
    "TemplateNotFound",
    "RetrievalError",
    "StepInvocationFailure",
    "PersistenceFailure",
    "RunNotFound",
    "InvalidRunTransition",
]
