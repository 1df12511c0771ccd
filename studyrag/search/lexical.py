import time

from loguru import logger

from studyrag.domain.chunk import DateRange, RetrievalFilters, RetrievedChunk
from studyrag.vector_dbs.base import VectorDB


class LexicalSearch:
    """Keyword ranking over chunk titles and text, independent of embeddings."""

    def __init__(self, *, vector_db: VectorDB) -> None:
        self.vector_db = vector_db

    def search(
        self,
        owner_user_id: str,
        query: str,
        limit: int = 10,
        course_tag: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[RetrievedChunk]:
        """Rank the owner's chunks by textual relevance to the query.

        `similarity` holds the raw relevance score, which is not comparable to
        vector similarity; only the order of the results is meaningful.
        """
        start = time.perf_counter()
        filters = RetrievalFilters(course_tag=course_tag, date_range=date_range)

        matches = self.vector_db.search_text(owner_user_id, query, limit=limit, filters=filters)
        chunks = [RetrievedChunk.from_match(match, similarity=match.score) for match in matches]

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Full-text search complete for user {owner_user_id}: {len(chunks)} chunks "
            f"in {latency_ms:.0f}ms"
        )
        return chunks
