import json
import threading
from pathlib import Path
from typing import Dict, Iterator, List

import numpy as np
from loguru import logger

from studyrag.domain.chunk import ChunkEmbedding, ChunkMatch, NoteChunk, RetrievalFilters
from studyrag.errors import StoreUnavailableError
from studyrag.search.bm25 import BM25Index
from studyrag.vector_dbs.base import VectorDB


class LocalVectorDB(VectorDB):
    """Local chunk store that keeps chunks and embeddings in a JSON file.

    Chunks only become visible to readers once their embedding exists, and
    deleting a chunk always deletes its embedding in the same locked call.
    """

    def __init__(self, filepath: str | Path | None = None, autosave: bool = True) -> None:
        """Initialize LocalVectorDB.

        Args:
            filepath: Path to the store file. If provided and exists, will auto-load.
                     If provided and doesn't exist, it is created on the first write.
                     If not provided, the store lives in memory only.
            autosave: Write the file after every mutating call when a filepath is set.
        """
        self._filepath = str(filepath) if filepath else None
        self._autosave = autosave
        self._lock = threading.RLock()
        self._chunks: Dict[str, NoteChunk] = {}
        self._embeddings: Dict[str, ChunkEmbedding] = {}
        self._embedding_by_chunk: Dict[str, str] = {}

        if self._filepath and Path(self._filepath).exists():
            with open(self._filepath, "r") as f:
                data = json.load(f)
            self._chunks = {
                chunk_id: NoteChunk(**chunk_data) for chunk_id, chunk_data in data["chunks"].items()
            }
            self._embeddings = {
                embedding_id: ChunkEmbedding(**embedding_data)
                for embedding_id, embedding_data in data["embeddings"].items()
            }
            self._reindex_embeddings()

    @classmethod
    def from_data(
        cls,
        chunks: Dict[str, NoteChunk] | None = None,
        embeddings: Dict[str, ChunkEmbedding] | None = None,
    ) -> "LocalVectorDB":
        """Create LocalVectorDB from provided data (useful for testing).

        Args:
            chunks: Chunks dictionary keyed by chunk id
            embeddings: Embeddings dictionary keyed by embedding id

        Returns:
            In-memory LocalVectorDB instance with provided data
        """
        instance = cls(filepath=None)
        instance._chunks = dict(chunks or {})
        instance._embeddings = dict(embeddings or {})
        instance._reindex_embeddings()
        return instance

    def _reindex_embeddings(self) -> None:
        self._embedding_by_chunk = {
            embedding.chunk_id: embedding.id for embedding in self._embeddings.values()
        }

    def add_chunks(self, chunks: List[NoteChunk]) -> None:
        """Insert the chunks of a new note generation."""
        with self._lock:
            duplicates = [chunk.id for chunk in chunks if chunk.id in self._chunks]
            if duplicates:
                raise ValueError(f"Chunks already exist: {duplicates}")
            for chunk in chunks:
                self._chunks[chunk.id] = chunk
            self._commit()

    def add_embeddings(self, embeddings: List[ChunkEmbedding]) -> None:
        """Insert one embedding per chunk. Each chunk must already exist."""
        with self._lock:
            for embedding in embeddings:
                if embedding.chunk_id not in self._chunks:
                    raise ValueError(f"Chunk {embedding.chunk_id} does not exist")
                if embedding.chunk_id in self._embedding_by_chunk:
                    raise ValueError(f"Chunk {embedding.chunk_id} already has an embedding")
            for embedding in embeddings:
                self._embeddings[embedding.id] = embedding
                self._embedding_by_chunk[embedding.chunk_id] = embedding.id
            self._commit()

    def delete_chunks(self, owner_user_id: str, chunk_ids: List[str]) -> int:
        """Delete chunks and, by cascade, their embeddings."""
        with self._lock:
            to_delete = [
                chunk_id
                for chunk_id in chunk_ids
                if chunk_id in self._chunks
                and self._chunks[chunk_id].owner_user_id == owner_user_id
            ]
            for chunk_id in to_delete:
                embedding_id = self._embedding_by_chunk.pop(chunk_id, None)
                if embedding_id is not None:
                    del self._embeddings[embedding_id]
            for chunk_id in to_delete:
                del self._chunks[chunk_id]
            if to_delete:
                self._commit()
            return len(to_delete)

    def delete_chunks_for_note(self, owner_user_id: str, note_id: str) -> int:
        """Delete every chunk (and embedding) of a note."""
        with self._lock:
            chunk_ids = [
                chunk.id
                for chunk in self._chunks.values()
                if chunk.note_id == note_id and chunk.owner_user_id == owner_user_id
            ]
            return self.delete_chunks(owner_user_id, chunk_ids)

    def get_chunks_for_note(self, owner_user_id: str, note_id: str) -> List[NoteChunk]:
        """Get a note's chunks ordered by chunk index."""
        with self._lock:
            chunks = [
                chunk
                for chunk in self._chunks.values()
                if chunk.note_id == note_id and chunk.owner_user_id == owner_user_id
            ]
        return sorted(chunks, key=lambda chunk: chunk.chunk_index)

    def get_embeddings_for_note(self, owner_user_id: str, note_id: str) -> List[ChunkEmbedding]:
        """Get the embeddings of a note's chunks, in chunk order."""
        with self._lock:
            return [
                self._embeddings[self._embedding_by_chunk[chunk.id]]
                for chunk in self.get_chunks_for_note(owner_user_id, note_id)
                if chunk.id in self._embedding_by_chunk
            ]

    def _visible(
        self, owner_user_id: str, filters: RetrievalFilters | None
    ) -> Iterator[tuple[NoteChunk, ChunkEmbedding]]:
        """Yield the owner's chunks that have an embedding and pass the filters."""
        for chunk in self._chunks.values():
            if chunk.owner_user_id != owner_user_id:
                continue
            if filters is not None and not filters.matches(chunk):
                continue
            embedding_id = self._embedding_by_chunk.get(chunk.id)
            if embedding_id is None:
                continue
            yield chunk, self._embeddings[embedding_id]

    def get_closest_chunks(
        self,
        owner_user_id: str,
        query_vector: np.ndarray,
        limit: int,
        filters: RetrievalFilters | None = None,
    ) -> List[ChunkMatch]:
        """Get the owner's `limit` nearest chunks by ascending cosine distance."""
        query_vector = np.asarray(query_vector, dtype=np.float32)
        query_norm = np.linalg.norm(query_vector)

        with self._lock:
            candidates = [
                (chunk, embedding)
                for chunk, embedding in self._visible(owner_user_id, filters)
                if embedding.vector.shape == query_vector.shape
            ]

        if not candidates or limit <= 0:
            return []

        matrix = np.stack([embedding.vector for _, embedding in candidates])
        norms = np.linalg.norm(matrix, axis=1) * query_norm
        dots = matrix @ query_vector
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, dots / norms, 0.0)
        distances = 1.0 - similarities

        ranked = sorted(
            zip(distances.tolist(), candidates),
            key=lambda item: (item[0], item[1][0].note_id, item[1][0].chunk_index),
        )
        return [
            ChunkMatch(
                chunk=chunk,
                embedding_id=embedding.id,
                embedding_model=embedding.model_name,
                score=distance,
            )
            for distance, (chunk, embedding) in ranked[:limit]
        ]

    def search_text(
        self,
        owner_user_id: str,
        query: str,
        limit: int,
        filters: RetrievalFilters | None = None,
    ) -> List[ChunkMatch]:
        """Get the owner's `limit` most relevant chunks by BM25 over title and content."""
        with self._lock:
            candidates = {
                chunk.id: (chunk, embedding)
                for chunk, embedding in self._visible(owner_user_id, filters)
            }

        if not candidates or limit <= 0:
            return []

        index = BM25Index(
            {
                chunk_id: f"{chunk.note_title} {chunk.content_raw}"
                for chunk_id, (chunk, _) in candidates.items()
            }
        )
        scores = index.scores(query)

        ranked = sorted(
            scores.items(),
            key=lambda item: (
                -item[1],
                candidates[item[0]][0].note_id,
                candidates[item[0]][0].chunk_index,
            ),
        )
        return [
            ChunkMatch(
                chunk=candidates[chunk_id][0],
                embedding_id=candidates[chunk_id][1].id,
                embedding_model=candidates[chunk_id][1].model_name,
                score=score,
            )
            for chunk_id, score in ranked[:limit]
        ]

    def save(self, filepath: str | None = None) -> None:
        """Save the store to a JSON file.

        Args:
            filepath: Path to save to. If not provided, uses the filepath from initialization.
        """
        save_path = filepath or self._filepath
        if not save_path:
            raise ValueError(
                "No filepath provided and no default filepath set during initialization"
            )

        with self._lock:
            data = {
                "chunks": {
                    chunk_id: chunk.model_dump(mode="json")
                    for chunk_id, chunk in self._chunks.items()
                },
                "embeddings": {
                    embedding_id: embedding.model_dump(mode="json")
                    for embedding_id, embedding in self._embeddings.items()
                },
            }
            try:
                Path(save_path).parent.mkdir(parents=True, exist_ok=True)
                with open(save_path, "w") as f:
                    json.dump(data, f)
            except OSError as e:
                raise StoreUnavailableError(f"Could not write chunk store {save_path}: {e}") from e

        logger.debug(f"Saved {len(data['chunks'])} chunks to {save_path}")

    def _commit(self) -> None:
        if self._filepath and self._autosave:
            self.save()

    def clear(self) -> None:
        """Clear all data from the store."""
        with self._lock:
            self._chunks.clear()
            self._embeddings.clear()
            self._embedding_by_chunk.clear()
            self._commit()
