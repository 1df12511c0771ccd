import asyncio
import time

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from studyrag.answers import AnswerAssembler, AnswerResult
from studyrag.api.auth import ensure_same_owner, get_owner_id
from studyrag.api.schemas import AskRequest, EventAccepted, SearchRequest
from studyrag.domain.chunk import RetrievalFilters, RetrievalResult
from studyrag.domain.events import NoteContentChanged, NoteDeleted
from studyrag.errors import EmbeddingProviderError
from studyrag.ingestion.dispatcher import ReindexDispatcher
from studyrag.search.hybrid import HybridSearch
from studyrag.search.lexical import LexicalSearch
from studyrag.search.retrieval import RetrievalService


async def _lexical_result(
    lexical: LexicalSearch, owner_user_id: str, query: str, limit: int, filters: RetrievalFilters
) -> RetrievalResult:
    start = time.perf_counter()
    chunks = await asyncio.to_thread(
        lexical.search, owner_user_id, query, limit, filters.course_tag, filters.date_range
    )
    latency_ms = (time.perf_counter() - start) * 1000
    return RetrievalResult(chunks=chunks, query_vector=[], latency_ms=latency_ms)


async def _run_search(
    *,
    request: SearchRequest,
    owner_user_id: str,
    retrieval: RetrievalService,
    lexical: LexicalSearch,
    hybrid: HybridSearch,
    default_limit: int,
) -> RetrievalResult:
    limit = request.limit or default_limit
    filters = request.filters or RetrievalFilters()

    if request.mode == "lexical":
        return await _lexical_result(lexical, owner_user_id, request.query, limit, filters)

    try:
        if request.mode == "hybrid":
            return await hybrid.search(owner_user_id, request.query, limit, filters)
        result = await asyncio.to_thread(
            retrieval.retrieve, owner_user_id, request.query, filters, limit
        )
    except EmbeddingProviderError as e:
        logger.error(f"Embedding provider failed for query of user {owner_user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Embedding provider unavailable"
        ) from e

    if request.min_similarity is None:
        return result
    kept = [chunk for chunk in result.chunks if chunk.similarity >= request.min_similarity]
    return result.model_copy(update={"chunks": kept})


def _create_search_endpoint(
    retrieval: RetrievalService, lexical: LexicalSearch, hybrid: HybridSearch, default_limit: int
):
    """Create the search endpoint handler."""

    async def search(
        request: SearchRequest,
        owner_user_id: str = Depends(get_owner_id),
    ) -> RetrievalResult:
        return await _run_search(
            request=request,
            owner_user_id=owner_user_id,
            retrieval=retrieval,
            lexical=lexical,
            hybrid=hybrid,
            default_limit=default_limit,
        )

    return search


def _create_ask_endpoint(
    retrieval: RetrievalService,
    lexical: LexicalSearch,
    hybrid: HybridSearch,
    answers: AnswerAssembler,
    default_limit: int,
):
    """Create the question answering endpoint handler."""

    async def ask(
        request: AskRequest,
        owner_user_id: str = Depends(get_owner_id),
    ) -> AnswerResult:
        result = await _run_search(
            request=request,
            owner_user_id=owner_user_id,
            retrieval=retrieval,
            lexical=lexical,
            hybrid=hybrid,
            default_limit=default_limit,
        )
        try:
            answer = await asyncio.to_thread(answers.answer, request.query, result.chunks)
        except Exception as e:
            logger.error(f"Error generating answer for user {owner_user_id}: {str(e)}")
            raise HTTPException(status_code=500, detail="Internal server error") from e

        return answer.model_copy(update={"latency_ms": result.latency_ms + answer.latency_ms})

    return ask


def _create_content_changed_endpoint(dispatcher: ReindexDispatcher):
    """Create the handler that accepts note content changes for re-indexing."""

    async def note_content_changed(
        event: NoteContentChanged,
        owner_user_id: str = Depends(get_owner_id),
    ) -> EventAccepted:
        ensure_same_owner(owner_user_id, event.owner_user_id)
        future = dispatcher.dispatch(event)
        return EventAccepted(accepted=future is not None, note_id=event.note_id)

    return note_content_changed


def _create_note_deleted_endpoint(dispatcher: ReindexDispatcher):
    """Create the handler that removes a deleted note's chunks."""

    async def note_deleted(
        event: NoteDeleted,
        owner_user_id: str = Depends(get_owner_id),
    ) -> EventAccepted:
        ensure_same_owner(owner_user_id, event.owner_user_id)
        future = dispatcher.dispatch(event)
        return EventAccepted(accepted=future is not None, note_id=event.note_id)

    return note_deleted


def get_endpoints_router(
    *,
    retrieval: RetrievalService,
    lexical: LexicalSearch,
    hybrid: HybridSearch,
    answers: AnswerAssembler,
    dispatcher: ReindexDispatcher,
    default_limit: int = 10,
) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health_check():
        return {"status": "healthy"}

    router.post("/api/search")(_create_search_endpoint(retrieval, lexical, hybrid, default_limit))
    router.post("/api/ask")(
        _create_ask_endpoint(retrieval, lexical, hybrid, answers, default_limit)
    )
    router.post("/api/events/note-content-changed", status_code=status.HTTP_202_ACCEPTED)(
        _create_content_changed_endpoint(dispatcher)
    )
    router.post("/api/events/note-deleted", status_code=status.HTTP_202_ACCEPTED)(
        _create_note_deleted_endpoint(dispatcher)
    )

    return router
