"""Hybrid search: semantic and lexical rankings merged with Reciprocal Rank Fusion."""

import asyncio
import time
from typing import Iterable

from loguru import logger

from studyrag.domain.chunk import RetrievalFilters, RetrievalResult, RetrievedChunk

from .lexical import LexicalSearch
from .retrieval import RetrievalService

DEFAULT_RRF_K = 60


def reciprocal_rank_fusion(
    rankings: Iterable[list[RetrievedChunk]], *, k: int = DEFAULT_RRF_K, limit: int = 10
) -> list[RetrievedChunk]:
    """Merge ranked lists by summing 1 / (k + rank) for every list a chunk appears in.

    Chunks are identified by (note_id, chunk_index). Ranks are 1-based. The fused
    score replaces `similarity` on the returned chunks; ties keep first-seen order.
    """
    scores: dict[tuple[str, int], float] = {}
    chunks: dict[tuple[str, int], RetrievedChunk] = {}

    for ranking in rankings:
        for rank, chunk in enumerate(ranking, start=1):
            key = chunk.fusion_key
            scores[key] = scores.get(key, 0.0) + 1.0 / (k + rank)
            chunks.setdefault(key, chunk)

    ordered = sorted(scores, key=lambda key: scores[key], reverse=True)
    return [chunks[key].model_copy(update={"similarity": scores[key]}) for key in ordered[:limit]]


class HybridSearch:
    def __init__(
        self,
        *,
        retrieval: RetrievalService,
        lexical: LexicalSearch,
        rrf_k: int = DEFAULT_RRF_K,
    ) -> None:
        self.retrieval = retrieval
        self.lexical = lexical
        self.rrf_k = rrf_k

    async def search(
        self,
        owner_user_id: str,
        query: str,
        limit: int = 10,
        filters: RetrievalFilters | None = None,
    ) -> RetrievalResult:
        """Run semantic and lexical search concurrently and fuse their rankings.

        Each side is asked for `limit * 2` candidates so fusion has material from both.
        """
        start = time.perf_counter()
        filters = filters or RetrievalFilters()
        candidates = limit * 2

        semantic, lexical = await asyncio.gather(
            asyncio.to_thread(self.retrieval.retrieve, owner_user_id, query, filters, candidates),
            asyncio.to_thread(
                self.lexical.search,
                owner_user_id,
                query,
                candidates,
                filters.course_tag,
                filters.date_range,
            ),
        )

        fused = reciprocal_rank_fusion([semantic.chunks, lexical], k=self.rrf_k, limit=limit)

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Hybrid search complete for user {owner_user_id}: {len(fused)} chunks "
            f"({len(semantic.chunks)} semantic, {len(lexical)} lexical) in {latency_ms:.0f}ms"
        )
        return RetrievalResult(
            chunks=fused, query_vector=semantic.query_vector, latency_ms=latency_ms
        )
