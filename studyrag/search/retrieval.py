"""Semantic retrieval of note chunks by vector similarity."""

import time

from loguru import logger

from studyrag.domain.chunk import RetrievalFilters, RetrievalResult, RetrievedChunk
from studyrag.embedders.base import Embedder, check_dimensions
from studyrag.vector_dbs.base import VectorDB


class RetrievalService:
    def __init__(self, *, embedder: Embedder, vector_db: VectorDB) -> None:
        self.embedder = embedder
        self.vector_db = vector_db

    def retrieve(
        self,
        owner_user_id: str,
        query: str,
        filters: RetrievalFilters | None = None,
        limit: int = 10,
    ) -> RetrievalResult:
        """Get the owner's chunks closest to the query, most similar first.

        `similarity` is `1 - cosine distance`. It is a ranking signal and is not
        guaranteed to lie in [0, 1].
        """
        start = time.perf_counter()

        query_vector = check_dimensions(self.embedder.embed(query), self.embedder)
        embedding_ms = (time.perf_counter() - start) * 1000

        matches = self.vector_db.get_closest_chunks(
            owner_user_id, query_vector, limit=limit, filters=filters
        )
        chunks = [
            RetrievedChunk.from_match(match, similarity=1.0 - match.score, distance=match.score)
            for match in matches
        ]

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Retrieval complete for user {owner_user_id}: {len(chunks)} chunks, "
            f"embedding {embedding_ms:.0f}ms, total {latency_ms:.0f}ms"
        )
        return RetrievalResult(
            chunks=chunks, query_vector=query_vector.tolist(), latency_ms=latency_ms
        )
