"""Retrying wrapper that runs re-index attempts until they succeed or the budget runs out."""

import time
from typing import Callable

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from studyrag.domain.events import NoteContentChanged, NoteDeleted, ReindexOutcome
from studyrag.errors import (
    EmbeddingDimensionError,
    EmbeddingProviderError,
    IndexingFailedError,
    StoreUnavailableError,
)

from .index_writer import IndexWriter

TRANSIENT_ERRORS = (EmbeddingProviderError, StoreUnavailableError)


class ReindexJob:
    """Handles note events with bounded retries and exponential backoff.

    After the last attempt fails the note is left either with its previous
    chunks or with none at all, never with a partial generation.
    """

    def __init__(
        self,
        index_writer: IndexWriter,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        backoff_max_seconds: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.index_writer = index_writer
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.sleep = sleep

    def run(
        self, event: NoteContentChanged | NoteDeleted, *, raise_on_failure: bool = False
    ) -> ReindexOutcome:
        """Handle one event, retrying transient failures.

        Args:
            event: Content-changed or deleted notification for a note
            raise_on_failure: Raise IndexingFailedError instead of returning a failed outcome

        Returns:
            The outcome of the successful attempt, or a `failed` outcome
        """
        attempts = 0

        def attempt() -> ReindexOutcome:
            nonlocal attempts
            attempts += 1
            if isinstance(event, NoteDeleted):
                return self.index_writer.remove_note(event)
            return self.index_writer.reindex(event)

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"Re-index attempt {retry_state.attempt_number}/{self.max_attempts} "
                f"for note {event.note_id} failed: {error}. Retrying in {wait:.1f}s"
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_max_seconds),
            retry=(
                retry_if_exception_type(TRANSIENT_ERRORS)
                & retry_if_not_exception_type(EmbeddingDimensionError)
            ),
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            outcome = retrying(attempt)
        except Exception as e:
            logger.error(f"Re-indexing note {event.note_id} failed after {attempts} attempts: {e}")
            if raise_on_failure:
                raise IndexingFailedError(event.note_id, e) from e
            return ReindexOutcome(
                note_id=event.note_id, status="failed", attempts=attempts, error=str(e)
            )

        return outcome.model_copy(update={"attempts": attempts})
