"""Parsed step outputs.

Agents are asked for JSON, but nothing guarantees they comply. A step output
is either the decoded JSON value (``StructuredOutput``) or the untouched reply
text (``RawOutput``). Both variants answer the same field queries so the
deliverable assembly can probe for fields without caring which one it holds.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_FENCE_TAG = re.compile(r"^json\b\s*", re.IGNORECASE)


class StructuredOutput(BaseModel):
    kind: Literal["structured"] = "structured"
    data: Any

    def field(self, name: str) -> Any:
        if isinstance(self.data, dict):
            return self.data.get(name)
        return None

    def list_field(self, name: str) -> Optional[list]:
        """Return ``name`` if it is present and a list, else ``None``."""
        value = self.field(name)
        return value if isinstance(value, list) else None

    def text_field(self, name: str) -> Optional[str]:
        value = self.field(name)
        if isinstance(value, str) and value.strip():
            return value
        return None

    def payload(self) -> Any:
        return self.data


class RawOutput(BaseModel):
    kind: Literal["raw"] = "raw"
    raw_text: str

    def field(self, name: str) -> Any:
        return None

    def list_field(self, name: str) -> Optional[list]:
        return None

    def text_field(self, name: str) -> Optional[str]:
        return None

    def payload(self) -> Any:
        return {"raw_text": self.raw_text}


StepOutput = Annotated[Union[StructuredOutput, RawOutput], Field(discriminator="kind")]


def strip_code_fence(text: str) -> str:
    """Remove a single markdown code fence wrapping ``text``."""
    content = text.strip()
    if content.startswith("```"):
        if "\n" in content:
            content = content.split("\n", 1)[1]
        else:
            content = _FENCE_TAG.sub("", content[3:], count=1)
        if content.endswith("```"):
            content = content.rsplit("```", 1)[0]
    return content.strip()


def parse_step_output(text: str) -> Union[StructuredOutput, RawOutput]:
    """Decode an agent reply, falling back to the raw text."""
    try:
        return StructuredOutput(data=json.loads(strip_code_fence(text)))
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug(f"Agent reply is not JSON, keeping raw text: {e}")
        return RawOutput(raw_text=text)
