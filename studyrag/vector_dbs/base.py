from typing import Protocol

import numpy as np

from studyrag.domain.chunk import ChunkEmbedding, ChunkMatch, NoteChunk, RetrievalFilters


class VectorDB(Protocol):
    """Chunk and embedding storage. Every read is scoped to one owner."""

    def add_chunks(self, chunks: list[NoteChunk]) -> None:
        """Insert the chunks of a new note generation."""
        ...

    def add_embeddings(self, embeddings: list[ChunkEmbedding]) -> None:
        """Insert one embedding per chunk. Each chunk must already exist."""
        ...

    def delete_chunks(self, owner_user_id: str, chunk_ids: list[str]) -> int:
        """Delete chunks and, by cascade, their embeddings. Returns the number of chunks deleted."""
        ...

    def delete_chunks_for_note(self, owner_user_id: str, note_id: str) -> int:
        """Delete every chunk (and embedding) of a note. Returns the number of chunks deleted."""
        ...

    def get_chunks_for_note(self, owner_user_id: str, note_id: str) -> list[NoteChunk]:
        """Get a note's chunks ordered by chunk index."""
        ...

    def get_embeddings_for_note(self, owner_user_id: str, note_id: str) -> list[ChunkEmbedding]:
        """Get the embeddings of a note's chunks, in chunk order."""
        ...

    def get_closest_chunks(
        self,
        owner_user_id: str,
        query_vector: np.ndarray,
        limit: int,
        filters: RetrievalFilters | None = None,
    ) -> list[ChunkMatch]:
        """Get the owner's `limit` nearest chunks by ascending cosine distance."""
        ...

    def search_text(
        self,
        owner_user_id: str,
        query: str,
        limit: int,
        filters: RetrievalFilters | None = None,
    ) -> list[ChunkMatch]:
        """Get the owner's `limit` most relevant chunks by textual relevance."""
        ...

    def save(self, filepath: str | None = None) -> None:
        """Save the store to disk."""
        ...

    def clear(self) -> None:
        """Clear all data from the store."""
        ...
