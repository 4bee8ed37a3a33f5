"""In-memory retrieval backend for tests and local runs."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from ..contracts import RetrievedChunk
from .base import Retriever

_TOKEN = re.compile(r"[a-z0-9]+")


def _terms(text: str) -> set[str]:
    return set(_TOKEN.findall(text.lower()))


class InMemoryRetriever(Retriever):
    """Rank stored chunks by the share of query terms they contain."""

    def __init__(
        self, chunks: Sequence[RetrievedChunk] = (), threshold: float = 0.0
    ) -> None:
        self._chunks: List[RetrievedChunk] = list(chunks)
        self.threshold = threshold

    def add_chunk(self, chunk: RetrievedChunk) -> None:
        self._chunks.append(chunk)

    def _scoped(
        self, workspace_id: str, file_ids: Optional[Sequence[str]]
    ) -> List[RetrievedChunk]:
        wanted = set(file_ids or [])
        return [
            c
            for c in self._chunks
            if c.workspace_id == workspace_id and (not wanted or c.file_id in wanted)
        ]

    async def retrieve(
        self,
        workspace_id: str,
        query: str,
        file_ids: Optional[Sequence[str]] = None,
        top_k: int = 20,
    ) -> List[RetrievedChunk]:
        query_terms = _terms(query)
        if not query_terms:
            return []

        scored: Dict[str, RetrievedChunk] = {}
        for chunk in self._scoped(workspace_id, file_ids):
            overlap = len(query_terms & _terms(chunk.content)) / len(query_terms)
            if overlap > self.threshold:
                scored[chunk.id] = chunk.model_copy(update={"similarity": overlap})

        ranked = sorted(scored.values(), key=lambda c: c.similarity, reverse=True)
        return ranked[:top_k]

    async def recent_chunks(
        self,
        workspace_id: str,
        file_ids: Optional[Sequence[str]] = None,
        limit: int = 20,
    ) -> List[RetrievedChunk]:
        chunks = sorted(self._scoped(workspace_id, file_ids), key=lambda c: c.chunk_index)
        return [c.model_copy() for c in chunks[:limit]]
