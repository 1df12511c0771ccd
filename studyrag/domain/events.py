"""Events that drive re-indexing, and the outcome of handling them."""

from typing import Literal

from pydantic import BaseModel


class NoteContentChanged(BaseModel):
    """A note was created or its title/content changed. Delivered at least once."""

    kind: Literal["created", "updated"] = "updated"
    note_id: str
    owner_user_id: str
    title: str
    content: str
    course_tag: str | None = None


class NoteDeleted(BaseModel):
    """A note was removed; all of its chunks and embeddings must go with it."""

    note_id: str
    owner_user_id: str


class ReindexOutcome(BaseModel):
    note_id: str
    status: Literal["indexed", "empty", "deleted", "failed"]
    chunks_indexed: int = 0
    chunks_deleted: int = 0
    attempts: int = 1
    error: str | None = None
