from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

from loguru import logger

from studyrag.domain.events import NoteContentChanged, NoteDeleted, ReindexOutcome

from .reindex_job import ReindexJob


class ReindexDispatcher:
    """Runs re-index jobs in the background so note writes never wait on them."""

    def __init__(self, job: ReindexJob, max_workers: int = 4) -> None:
        self.job = job
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reindex")

    def dispatch(self, event: NoteContentChanged | NoteDeleted) -> Future[ReindexOutcome] | None:
        """Schedule a job for the event and return immediately.

        Returns None when the event could not be scheduled; the failure is only logged.
        """
        try:
            future = self._executor.submit(self.job.run, event)
        except RuntimeError as e:
            logger.error(f"Failed to dispatch re-index for note {event.note_id}: {e}")
            return None

        future.add_done_callback(partial(self._log_result, event.note_id))
        return future

    @staticmethod
    def _log_result(note_id: str, future: Future[ReindexOutcome]) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Re-index job for note {note_id} crashed: {error}")
            return
        outcome = future.result()
        if outcome.status == "failed":
            logger.error(f"Note {note_id} left unindexed: {outcome.error}")
        else:
            logger.debug(f"Re-index job for note {note_id} finished: {outcome.status}")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
