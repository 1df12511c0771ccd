import sys

import instructor
from anthropic import Anthropic
from loguru import logger

from studyrag.api import create_app
from studyrag.config import settings
from studyrag.embedders.base import Embedder
from studyrag.embedders.openai_embedder import OpenAIEmbedder
from studyrag.embedders.voyage_embedder import VoyageEmbedder
from studyrag.ingestion.dispatcher import ReindexDispatcher
from studyrag.ingestion.index_writer import IndexWriter
from studyrag.ingestion.markdown_chunker import ChunkerOptions, MarkdownChunker
from studyrag.ingestion.reindex_job import ReindexJob
from studyrag.llms.instructor_llm_chat import InstructorLLMChat
from studyrag.vector_dbs.local_db import LocalVectorDB

logger.configure(handlers=[{"sink": sys.stderr, "level": settings.log_level}])


def get_embedder() -> Embedder:
    if settings.embedding_provider == "voyage":
        return VoyageEmbedder(api_key=settings.voyage_ai_api_key)
    return OpenAIEmbedder(api_key=settings.openai_api_key)


logger.info(
    f"Initializing study assistant with {settings.embedding_provider} embeddings "
    f"and Claude answers through Instructor"
)
anthropic_client = Anthropic(api_key=settings.anthropic_api_key)
instructor_client = instructor.from_anthropic(
    anthropic_client, mode=instructor.Mode.ANTHROPIC_TOOLS
)

vector_db = LocalVectorDB(settings.local_vector_db_path)
embedder = get_embedder()
chunker = MarkdownChunker(
    ChunkerOptions(
        min_tokens=settings.chunk_min_tokens,
        target_min_tokens=settings.chunk_target_min_tokens,
        target_max_tokens=settings.chunk_target_max_tokens,
    )
)
job = ReindexJob(
    IndexWriter(embedder=embedder, vector_db=vector_db, chunker=chunker),
    max_attempts=settings.reindex_max_attempts,
    backoff_seconds=settings.reindex_backoff_seconds,
    backoff_max_seconds=settings.reindex_backoff_max_seconds,
)
chatbot = InstructorLLMChat(
    instructor_client, model=settings.llm_model, max_tokens=settings.llm_max_tokens
)
app = create_app(
    vector_db=vector_db,
    embedder=embedder,
    chatbot=chatbot,
    dispatcher=ReindexDispatcher(job, max_workers=settings.reindex_workers),
    system_message=settings.system_message,
    default_limit=settings.rag_closest_chunks,
    rrf_k=settings.rrf_k,
)
