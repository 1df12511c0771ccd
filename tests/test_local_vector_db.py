"""Tests for LocalVectorDB functionality."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest

from studyrag.domain.chunk import ChunkEmbedding, DateRange, NoteChunk, RetrievalFilters
from studyrag.vector_dbs.local_db import LocalVectorDB


def make_chunk(
    chunk_id: str,
    *,
    note_id: str = "note-1",
    owner_user_id: str = "user-a",
    chunk_index: int = 0,
    content: str = "Some note text",
    course_tag: str | None = None,
    created_at: datetime | None = None,
) -> NoteChunk:
    return NoteChunk(
        id=chunk_id,
        owner_user_id=owner_user_id,
        note_id=note_id,
        note_title="Test Note",
        course_tag=course_tag,
        content_raw=content,
        content_embed=f"Title: Test Note | Section: Main\n\n{content}",
        chunk_index=chunk_index,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_embedding(chunk_id: str, vector: list[float]) -> ChunkEmbedding:
    return ChunkEmbedding(
        id=f"emb-{chunk_id}",
        chunk_id=chunk_id,
        vector=np.array(vector, dtype=np.float32),
        model_name="test-model",
    )


@pytest.fixture
def populated_db() -> LocalVectorDB:
    db = LocalVectorDB()
    db.add_chunks(
        [
            make_chunk("c1", chunk_index=0, content="Derivatives measure change"),
            make_chunk("c2", chunk_index=1, content="Integrals measure area"),
            make_chunk("c3", note_id="note-2", content="Bake bread in an oven"),
            make_chunk("c4", owner_user_id="user-b", content="Derivatives for user b"),
        ]
    )
    db.add_embeddings(
        [
            make_embedding("c1", [1.0, 0.0, 0.0]),
            make_embedding("c2", [0.7, 0.7, 0.0]),
            make_embedding("c3", [0.0, 0.0, 1.0]),
            make_embedding("c4", [1.0, 0.0, 0.0]),
        ]
    )
    return db


def test_closest_chunks_are_ordered_by_distance(populated_db: LocalVectorDB) -> None:
    matches = populated_db.get_closest_chunks("user-a", np.array([1.0, 0.0, 0.0]), limit=10)

    assert [match.chunk.id for match in matches] == ["c1", "c2", "c3"]
    assert matches[0].score == pytest.approx(0.0, abs=1e-6)
    assert matches[-1].score == pytest.approx(1.0, abs=1e-6)
    assert all(match.embedding_model == "test-model" for match in matches)


def test_closest_chunks_respects_limit(populated_db: LocalVectorDB) -> None:
    matches = populated_db.get_closest_chunks("user-a", np.array([1.0, 0.0, 0.0]), limit=1)

    assert [match.chunk.id for match in matches] == ["c1"]


def test_closest_chunks_never_cross_owners(populated_db: LocalVectorDB) -> None:
    matches = populated_db.get_closest_chunks("user-b", np.array([1.0, 0.0, 0.0]), limit=10)

    assert [match.chunk.id for match in matches] == ["c4"]
    assert populated_db.get_closest_chunks("user-c", np.array([1.0, 0.0, 0.0]), limit=10) == []


def test_zero_vector_has_distance_one() -> None:
    db = LocalVectorDB()
    db.add_chunks([make_chunk("c1")])
    db.add_embeddings([make_embedding("c1", [0.0, 0.0, 0.0])])

    matches = db.get_closest_chunks("user-a", np.array([1.0, 0.0, 0.0]), limit=5)

    assert matches[0].score == pytest.approx(1.0)


def test_chunk_without_embedding_is_not_visible() -> None:
    db = LocalVectorDB()
    db.add_chunks([make_chunk("c1", content="Derivatives measure change")])

    assert db.get_closest_chunks("user-a", np.array([1.0, 0.0, 0.0]), limit=5) == []
    assert db.search_text("user-a", "derivatives", limit=5) == []


def test_course_filter(populated_db: LocalVectorDB) -> None:
    populated_db.add_chunks([make_chunk("c5", note_id="note-3", course_tag="calculus")])
    populated_db.add_embeddings([make_embedding("c5", [1.0, 0.0, 0.0])])

    matches = populated_db.get_closest_chunks(
        "user-a",
        np.array([1.0, 0.0, 0.0]),
        limit=10,
        filters=RetrievalFilters(course_tag="calculus"),
    )

    assert [match.chunk.id for match in matches] == ["c5"]


def test_date_range_filter() -> None:
    now = datetime.now(timezone.utc)
    db = LocalVectorDB()
    db.add_chunks(
        [
            make_chunk("old", created_at=now - timedelta(days=30)),
            make_chunk("new", note_id="note-2", created_at=now),
        ]
    )
    db.add_embeddings([make_embedding("old", [1.0, 0.0]), make_embedding("new", [1.0, 0.0])])

    filters = RetrievalFilters(
        date_range=DateRange(start=now - timedelta(days=1), end=now + timedelta(days=1))
    )
    matches = db.get_closest_chunks("user-a", np.array([1.0, 0.0]), limit=10, filters=filters)

    assert [match.chunk.id for match in matches] == ["new"]


def test_date_range_rejects_reversed_bounds() -> None:
    now = datetime.now(timezone.utc)

    with pytest.raises(ValueError):
        DateRange(start=now, end=now - timedelta(days=1))


def test_delete_cascades_to_embeddings(populated_db: LocalVectorDB) -> None:
    deleted = populated_db.delete_chunks_for_note("user-a", "note-1")

    assert deleted == 2
    assert populated_db.get_chunks_for_note("user-a", "note-1") == []
    assert populated_db.get_embeddings_for_note("user-a", "note-1") == []
    # A new embedding for a deleted chunk id is an orphan
    with pytest.raises(ValueError):
        populated_db.add_embeddings([make_embedding("c1", [1.0, 0.0, 0.0])])


def test_delete_ignores_other_owners(populated_db: LocalVectorDB) -> None:
    assert populated_db.delete_chunks("user-b", ["c1", "c2"]) == 0
    assert len(populated_db.get_chunks_for_note("user-a", "note-1")) == 2


def test_add_chunks_rejects_duplicate_ids(populated_db: LocalVectorDB) -> None:
    with pytest.raises(ValueError):
        populated_db.add_chunks([make_chunk("c1")])


def test_one_embedding_per_chunk(populated_db: LocalVectorDB) -> None:
    second = ChunkEmbedding(
        id="emb-other", chunk_id="c1", vector=np.array([0.0, 1.0, 0.0]), model_name="m"
    )

    with pytest.raises(ValueError):
        populated_db.add_embeddings([second])


def test_get_chunks_for_note_is_ordered(populated_db: LocalVectorDB) -> None:
    chunks = populated_db.get_chunks_for_note("user-a", "note-1")

    assert [chunk.chunk_index for chunk in chunks] == [0, 1]


def test_search_text_ranks_by_keyword(populated_db: LocalVectorDB) -> None:
    matches = populated_db.search_text("user-a", "bread oven", limit=10)

    assert [match.chunk.id for match in matches] == ["c3"]
    assert matches[0].score > 0


def test_save_and_load_round_trip(populated_db: LocalVectorDB, tmp_path: Path) -> None:
    filepath = tmp_path / "nested" / "chunks.json"

    populated_db.save(str(filepath))
    loaded = LocalVectorDB(filepath)

    assert [c.id for c in loaded.get_chunks_for_note("user-a", "note-1")] == ["c1", "c2"]
    embeddings = loaded.get_embeddings_for_note("user-a", "note-1")
    np.testing.assert_allclose(embeddings[0].vector, [1.0, 0.0, 0.0])
    data = json.loads(filepath.read_text())
    assert set(data) == {"chunks", "embeddings"}


def test_file_backed_store_autosaves(tmp_path: Path) -> None:
    filepath = tmp_path / "chunks.json"
    db = LocalVectorDB(filepath)

    db.add_chunks([make_chunk("c1")])
    db.add_embeddings([make_embedding("c1", [1.0, 0.0])])

    reloaded = LocalVectorDB(filepath)
    assert len(reloaded.get_embeddings_for_note("user-a", "note-1")) == 1


def test_save_without_path_raises() -> None:
    with pytest.raises(ValueError, match="No filepath provided"):
        LocalVectorDB().save()


def test_clear(populated_db: LocalVectorDB) -> None:
    populated_db.clear()

    assert populated_db.get_closest_chunks("user-a", np.array([1.0, 0.0, 0.0]), limit=10) == []
