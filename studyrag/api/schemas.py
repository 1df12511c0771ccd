from typing import Literal

from pydantic import BaseModel, Field

from studyrag.domain.chunk import RetrievalFilters


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    limit: int | None = Field(default=None, ge=1, le=100)
    filters: RetrievalFilters | None = None
    mode: Literal["semantic", "lexical", "hybrid"] = "hybrid"
    # Applies to semantic results only; lexical and fused scores are on other scales
    min_similarity: float | None = Field(default=None, ge=-1.0, le=1.0)


class AskRequest(SearchRequest):
    pass


class EventAccepted(BaseModel):
    accepted: bool
    note_id: str
