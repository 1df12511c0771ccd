"""Writes one generation of chunks and embeddings for a note."""

from datetime import datetime, timezone
from uuid import uuid4

import numpy as np
from loguru import logger

from studyrag.domain.chunk import ChunkDraft, ChunkEmbedding, NoteChunk
from studyrag.domain.events import NoteContentChanged, NoteDeleted, ReindexOutcome
from studyrag.embedders.base import Embedder, check_dimensions
from studyrag.errors import EmbeddingProviderError
from studyrag.vector_dbs.base import VectorDB

from .markdown_chunker import MarkdownChunker


class IndexWriter:
    """Replaces a note's chunks with a freshly chunked and embedded generation.

    Each call to `reindex` is one attempt of the pipeline: delete the previous
    generation, chunk, embed, persist. Every stage can be re-run safely, so a
    failed attempt is retried by running the whole pipeline again.
    """

    def __init__(
        self,
        *,
        embedder: Embedder,
        vector_db: VectorDB,
        chunker: MarkdownChunker | None = None,
    ):
        """Initialize the writer with required services.

        Args:
            embedder: Embedder service for creating vector embeddings
            vector_db: Store holding chunks and embeddings
            chunker: Markdown chunker; a default one is created if not provided
        """
        self.embedder = embedder
        self.vector_db = vector_db
        self.chunker = chunker or MarkdownChunker()

    def reindex(self, event: NoteContentChanged) -> ReindexOutcome:
        """Run one attempt of the re-index pipeline for a changed note.

        Args:
            event: The content-changed notification

        Returns:
            Outcome with the number of chunks deleted and indexed

        Raises:
            EmbeddingDimensionError: A vector had the wrong length; nothing was persisted
            EmbeddingProviderError: The embedding provider failed
            StoreUnavailableError: The store could not complete a write
        """
        logger.info(f"Re-indexing note {event.note_id} ({event.kind})")

        # A first-time create has nothing to delete; running the step anyway keeps
        # duplicate deliveries of the same event from doubling the chunks.
        deleted = self.vector_db.delete_chunks_for_note(event.owner_user_id, event.note_id)
        if deleted:
            logger.info(f"Deleted {deleted} old chunks for note {event.note_id}")

        drafts = self.chunker.chunk_note(
            note_id=event.note_id,
            note_title=event.title,
            content=event.content,
            course_tag=event.course_tag,
        )
        logger.info(f"Chunked note {event.note_id} into {len(drafts)} chunks")

        if not drafts:
            logger.info(f"Note {event.note_id} has no content to embed, skipping")
            return ReindexOutcome(note_id=event.note_id, status="empty", chunks_deleted=deleted)

        vectors = self._embed(drafts)
        chunks = self._persist(event, drafts, vectors)

        logger.info(f"Indexed {len(chunks)} chunks for note {event.note_id}")
        return ReindexOutcome(
            note_id=event.note_id,
            status="indexed",
            chunks_indexed=len(chunks),
            chunks_deleted=deleted,
        )

    def remove_note(self, event: NoteDeleted) -> ReindexOutcome:
        """Delete every chunk and embedding of a removed note."""
        deleted = self.vector_db.delete_chunks_for_note(event.owner_user_id, event.note_id)
        logger.info(f"Deleted {deleted} chunks for removed note {event.note_id}")
        return ReindexOutcome(note_id=event.note_id, status="deleted", chunks_deleted=deleted)

    def _embed(self, drafts: list[ChunkDraft]) -> list[np.ndarray]:
        """Embed every draft's contextual text, in provider-sized batches."""
        texts = [draft.content_embed for draft in drafts]
        batch_size = self.embedder.max_batch_size
        vectors: list[np.ndarray] = []

        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            logger.debug(f"Embedding batch of {len(batch)} texts with {self.embedder.model_name}")
            batch_vectors = self.embedder.embed_batch(batch)
            if len(batch_vectors) != len(batch):
                raise EmbeddingProviderError(
                    f"Embedding provider returned {len(batch_vectors)} vectors "
                    f"for {len(batch)} texts"
                )
            vectors.extend(check_dimensions(vector, self.embedder) for vector in batch_vectors)

        return vectors

    def _persist(
        self,
        event: NoteContentChanged,
        drafts: list[ChunkDraft],
        vectors: list[np.ndarray],
    ) -> list[NoteChunk]:
        """Insert chunks, then embeddings; remove the chunks again if the second insert fails."""
        created_at = datetime.now(timezone.utc)
        chunks = [
            NoteChunk(
                id=uuid4().hex,
                owner_user_id=event.owner_user_id,
                note_id=draft.note_id,
                note_title=draft.note_title,
                section_path=draft.section_path,
                course_tag=draft.course_tag,
                content_raw=draft.content_raw,
                content_embed=draft.content_embed,
                chunk_index=draft.chunk_index,
                created_at=created_at,
            )
            for draft in drafts
        ]
        embeddings = [
            ChunkEmbedding(
                id=uuid4().hex,
                chunk_id=chunk.id,
                vector=vector,
                model_name=self.embedder.model_name,
            )
            for chunk, vector in zip(chunks, vectors)
        ]

        self.vector_db.add_chunks(chunks)
        try:
            self.vector_db.add_embeddings(embeddings)
        except Exception:
            logger.error(
                f"Inserting embeddings for note {event.note_id} failed, "
                f"rolling back {len(chunks)} chunks"
            )
            self.vector_db.delete_chunks(event.owner_user_id, [chunk.id for chunk in chunks])
            raise

        return chunks
