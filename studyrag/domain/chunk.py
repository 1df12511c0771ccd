"""Chunk domain models."""

from datetime import datetime, timezone
from typing import Annotated

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkDraft(BaseModel):
    """A chunk produced by the chunker, before it has an id or a vector.

    Attributes:
        note_id: ID of the note the chunk was cut from
        note_title: Title of the note at chunking time
        section_path: Enclosing header titles, outermost first
        course_tag: Optional course the note belongs to
        content_raw: The exact retrievable text
        content_embed: content_raw prefixed with a contextual header, used only for embedding
        chunk_index: 0-based position of the chunk within the note
    """

    note_id: str
    note_title: str
    section_path: list[str] = []
    course_tag: str | None = None
    content_raw: str
    content_embed: str
    chunk_index: int


class NoteChunk(BaseModel):
    """A persisted chunk of one note generation, owned by a user."""

    id: str
    owner_user_id: str
    note_id: str
    note_title: str
    section_path: list[str] = []
    course_tag: str | None = None
    content_raw: str
    content_embed: str
    chunk_index: int
    created_at: datetime = Field(default_factory=_utcnow)


def nd_array_before_validator(x: list[float]) -> NDArray[np.float32]:
    return np.array(x, dtype=np.float32)


def nd_array_serializer(x: NDArray[np.float32]) -> list[float]:
    return x.tolist()  # type: ignore


NumPyArray = Annotated[
    np.ndarray,
    BeforeValidator(nd_array_before_validator),
    PlainSerializer(nd_array_serializer, return_type=list),
]


class ChunkEmbedding(BaseModel):
    """The vector of exactly one chunk. Deleted together with its chunk."""

    id: str
    chunk_id: str
    vector: NumPyArray
    model_name: str

    model_config = {"arbitrary_types_allowed": True}


class ChunkMatch(BaseModel):
    """A row returned by one of the store's ranked read primitives.

    `score` is the cosine distance for vector search (lower is better) and the
    relevance score for text search (higher is better).
    """

    chunk: NoteChunk
    embedding_id: str
    embedding_model: str
    score: float


class RetrievedChunk(NoteChunk):
    """A chunk returned by a query-time read path, with its ranking signal."""

    embedding_id: str
    embedding_model: str
    distance: float | None = None  # cosine distance, vector search only
    similarity: float

    @classmethod
    def from_match(cls, match: ChunkMatch, *, similarity: float, distance: float | None = None):
        return cls(
            **match.chunk.model_dump(),
            embedding_id=match.embedding_id,
            embedding_model=match.embedding_model,
            distance=distance,
            similarity=similarity,
        )

    @property
    def fusion_key(self) -> tuple[str, int]:
        return self.note_id, self.chunk_index


class DateRange(BaseModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date range start must not be after its end")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class RetrievalFilters(BaseModel):
    course_tag: str | None = None
    date_range: DateRange | None = None

    def matches(self, chunk: NoteChunk) -> bool:
        if self.course_tag is not None and chunk.course_tag != self.course_tag:
            return False
        if self.date_range is not None and not self.date_range.contains(chunk.created_at):
            return False
        return True


class RetrievalResult(BaseModel):
    chunks: list[RetrievedChunk]
    query_vector: list[float]
    latency_ms: float
