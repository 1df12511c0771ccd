from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyrag.answers import AnswerAssembler
from studyrag.api.endpoints import get_endpoints_router
from studyrag.embedders.base import Embedder
from studyrag.ingestion.dispatcher import ReindexDispatcher
from studyrag.llms.base import LLMChat
from studyrag.search.hybrid import DEFAULT_RRF_K, HybridSearch
from studyrag.search.lexical import LexicalSearch
from studyrag.search.retrieval import RetrievalService
from studyrag.vector_dbs.base import VectorDB


def create_app(
    *,
    vector_db: VectorDB,
    embedder: Embedder,
    chatbot: LLMChat,
    dispatcher: ReindexDispatcher,
    system_message: str | None = None,
    default_limit: int = 10,
    rrf_k: int = DEFAULT_RRF_K,
) -> FastAPI:
    """Create FastAPI app."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        dispatcher.shutdown(wait=True)

    app = FastAPI(lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    retrieval = RetrievalService(embedder=embedder, vector_db=vector_db)
    lexical = LexicalSearch(vector_db=vector_db)

    app.include_router(
        router=get_endpoints_router(
            retrieval=retrieval,
            lexical=lexical,
            hybrid=HybridSearch(retrieval=retrieval, lexical=lexical, rrf_k=rrf_k),
            answers=AnswerAssembler(chatbot, system_message=system_message),
            dispatcher=dispatcher,
            default_limit=default_limit,
        )
    )

    return app
