"""Core data contracts for bucketcrew workflow runs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FormFieldOption(BaseModel):
    label: str
    value: str


class FormField(BaseModel):
    """Input field a template asks the user to fill in."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    type: Literal["text", "textarea", "select", "checkbox", "file-select"] = "text"
    placeholder: Optional[str] = None
    required: bool = False
    options: List[FormFieldOption] = Field(default_factory=list)


class WorkflowStep(BaseModel):
    """Defines one agent step in a workflow template."""

    model_config = ConfigDict(frozen=True)

    id: str
    agent_role: str
    name: str
    description: str = ""
    instructions: Optional[str] = Field(
        default=None, description="Step-level override of the role instructions"
    )
    depends_on: List[str] = Field(default_factory=list)
    parallel_group: Optional[str] = None


class WorkflowTemplate(BaseModel):
    """Immutable definition of a multi-agent workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: str = ""
    tagline: str = ""
    what_you_get: List[str] = Field(default_factory=list)
    credit_cost: int = 1
    output_schema: str = "findings"
    form_fields: List[FormField] = Field(default_factory=list)
    steps: List[WorkflowStep] = Field(default_factory=list)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.id == step_id), None)


class RetrievedChunk(BaseModel):
    """Excerpt of a workspace document returned by retrieval."""

    id: str
    file_id: str
    workspace_id: str
    chunk_index: int = 0
    content: str
    token_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: float = 0.0
    file_name: str = "unknown"


class ProgressEntry(BaseModel):
    """Step status event appended to a run's progress log."""

    model_config = ConfigDict(frozen=True)

    agent: str
    role: str
    status: Literal["running", "completed", "error"]
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    duration_ms: Optional[int] = None


class ChecklistItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    completed: bool = False


class DeliverableSource(BaseModel):
    type: Literal["bucket", "web"] = "bucket"
    name: str
    url: Optional[str] = None
    file_id: Optional[str] = None
    relevance: str = ""


class DeliverableContent(BaseModel):
    """Body of a deliverable.

    Findings, recommendations and plan phases are kept as the JSON objects the
    agents produced; their shape is not guaranteed.
    """

    executive_summary: str
    findings: List[Any] = Field(default_factory=list)
    recommendations: List[Any] = Field(default_factory=list)
    plan_30_60_90: List[Any] = Field(default_factory=list)
    risks_assumptions: List[Any] = Field(default_factory=list)


class Deliverable(BaseModel):
    """Final artifact produced by a completed run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str
    run_id: str
    title: str
    content: DeliverableContent
    checklist: List[ChecklistItem] = Field(default_factory=list)
    sources: List[DeliverableSource] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class RunRequest(BaseModel):
    """Envelope published to a queue to start a run on a worker."""

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    workspace_id: str
    template_id: str
    user_input: Dict[str, Any] = Field(default_factory=dict)
    file_ids: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_json(self) -> str:
        """Serialize request to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "RunRequest":
        """Deserialize request from JSON."""
        return cls.model_validate_json(data)
