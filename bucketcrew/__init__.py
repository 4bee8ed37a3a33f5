"""BucketCrew: multi-agent workflow orchestration for consulting deliverables."""

from .contracts import Deliverable, RunRequest, WorkflowStep, WorkflowTemplate
from .dispatch import RunDispatcher
from .engine import WorkflowEngine
from .execute import RunWorker
from .persistence import get_repository
from .planner import order_steps, validate_template
from .status import read_run_status, stream_run
from .templates import get_template_store
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "Deliverable",
    "RunRequest",
    "WorkflowStep",
    "WorkflowTemplate",
    "RunDispatcher",
    "WorkflowEngine",
    "RunWorker",
    "get_repository",
    "get_template_store",
    "get_transport",
    "order_steps",
    "validate_template",
    "read_run_status",
    "stream_run",
]
