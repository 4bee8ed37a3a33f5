from .executor import StepExecutor, build_step_message
from .prompts import ROLE_INSTRUCTIONS, resolve_instructions

__all__ = [
    "StepExecutor",
    "build_step_message",
    "ROLE_INSTRUCTIONS",
    "resolve_instructions",
]
