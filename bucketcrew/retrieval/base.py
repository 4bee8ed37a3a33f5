"""Retrieval adapter interface."""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from ..contracts import RetrievedChunk


class Retriever(Protocol):
    """Supplies workspace document excerpts to a run.

    Implementations raise ``RetrievalError`` when the backend fails.
    """

    async def retrieve(
        self,
        workspace_id: str,
        query: str,
        file_ids: Optional[Sequence[str]] = None,
        top_k: int = 20,
    ) -> List[RetrievedChunk]:
        """Return up to ``top_k`` chunks ranked by descending similarity."""

    async def recent_chunks(
        self,
        workspace_id: str,
        file_ids: Optional[Sequence[str]] = None,
        limit: int = 20,
    ) -> List[RetrievedChunk]:
        """Return up to ``limit`` chunks ordered by chunk index, unranked."""
