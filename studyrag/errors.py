"""Exceptions raised by the indexing and retrieval pipeline."""


class StudyRagError(Exception):
    """Base class for all studyrag errors."""


class EmbeddingProviderError(StudyRagError):
    """The embedding provider failed (timeout, quota, malformed input)."""


class EmbeddingDimensionError(EmbeddingProviderError):
    """A vector came back with a length other than the model's declared dimensionality."""

    def __init__(self, *, expected: int, actual: int, model_name: str) -> None:
        self.expected = expected
        self.actual = actual
        self.model_name = model_name
        super().__init__(
            f"Embedding model {model_name} returned a vector of length {actual} "
            f"(expected {expected})"
        )


class StoreUnavailableError(StudyRagError):
    """The chunk store could not complete a read or write."""


class IndexingFailedError(StudyRagError):
    """Re-indexing a note failed after all retry attempts."""

    def __init__(self, note_id: str, cause: BaseException) -> None:
        self.note_id = note_id
        self.cause = cause
        super().__init__(f"Indexing note {note_id} failed: {cause}")
