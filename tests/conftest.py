from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from studyrag.api import create_app
from studyrag.domain.events import NoteContentChanged
from studyrag.ingestion.dispatcher import ReindexDispatcher
from studyrag.ingestion.index_writer import IndexWriter
from studyrag.ingestion.markdown_chunker import ChunkerOptions, MarkdownChunker
from studyrag.ingestion.reindex_job import ReindexJob
from studyrag.vector_dbs.local_db import LocalVectorDB
from tests.fakes import FakeEmbedder, FakeLLMChat

CALCULUS_NOTE = """# Derivatives

## Definition

A derivative measures the instantaneous rate of change of a function at a point.

## Rules

The power rule gives the derivative of x squared as two x."""

COOKING_NOTE = """# Bread

## Dough

Mix flour, water and yeast into a dough and let it rest for an hour.

## Baking

Bake the loaf in a hot oven until the crust is golden."""


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_chat() -> FakeLLMChat:
    return FakeLLMChat(
        response='A derivative is a rate of change. [Note: "Derivatives", Section: "Definition"]'
    )


@pytest.fixture
def vector_db() -> LocalVectorDB:
    return LocalVectorDB()


@pytest.fixture
def chunker() -> MarkdownChunker:
    """Chunker that never merges or collapses short notes, so every section is its own chunk."""
    return MarkdownChunker(ChunkerOptions(min_tokens=0, target_min_tokens=0))


@pytest.fixture
def index_writer(
    fake_embedder: FakeEmbedder, vector_db: LocalVectorDB, chunker: MarkdownChunker
) -> IndexWriter:
    return IndexWriter(embedder=fake_embedder, vector_db=vector_db, chunker=chunker)


@pytest.fixture
def reindex_job(index_writer: IndexWriter) -> ReindexJob:
    return ReindexJob(index_writer, max_attempts=3, backoff_seconds=0)


@pytest.fixture
def make_event() -> Callable[..., NoteContentChanged]:
    def _make_event(
        note_id: str = "note-1",
        owner_user_id: str = "user-a",
        title: str = "Derivatives",
        content: str = CALCULUS_NOTE,
        course_tag: str | None = "calculus",
        kind: str = "updated",
    ) -> NoteContentChanged:
        return NoteContentChanged(
            kind=kind,
            note_id=note_id,
            owner_user_id=owner_user_id,
            title=title,
            content=content,
            course_tag=course_tag,
        )

    return _make_event


@pytest.fixture
def indexed_corpus(
    index_writer: IndexWriter, make_event: Callable[..., NoteContentChanged]
) -> LocalVectorDB:
    """User A owns a calculus note and a cooking note; user B owns a history note."""
    index_writer.reindex(make_event())
    index_writer.reindex(
        make_event(note_id="note-2", title="Bread", content=COOKING_NOTE, course_tag="cooking")
    )
    index_writer.reindex(
        make_event(
            note_id="note-3",
            owner_user_id="user-b",
            title="Empires",
            content="# Empires\n\nThe empire signed a treaty to end the war.",
            course_tag="history",
        )
    )
    return index_writer.vector_db  # type: ignore[return-value]


@pytest.fixture
def dispatcher(reindex_job: ReindexJob) -> Generator[ReindexDispatcher, None, None]:
    dispatcher = ReindexDispatcher(reindex_job, max_workers=2)
    yield dispatcher
    dispatcher.shutdown(wait=True)


@pytest.fixture
def test_client(
    fake_embedder: FakeEmbedder,
    indexed_corpus: LocalVectorDB,
    fake_chat: FakeLLMChat,
    dispatcher: ReindexDispatcher,
) -> TestClient:
    """Create test client with fake implementations."""
    app = create_app(
        vector_db=indexed_corpus,
        embedder=fake_embedder,
        chatbot=fake_chat,
        dispatcher=dispatcher,
    )
    return TestClient(app)
