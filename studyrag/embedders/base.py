from typing import Protocol

import numpy as np

from studyrag.errors import EmbeddingDimensionError


class Embedder(Protocol):
    model_name: str
    dimensions: int
    max_batch_size: int

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text, typically a search query."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Embed up to `max_batch_size` texts in one provider call, preserving order."""
        ...


def check_dimensions(vector: np.ndarray, embedder: Embedder) -> np.ndarray:
    """Return the vector unchanged, or raise if its length is not the model's dimensionality."""
    if vector.ndim != 1 or vector.shape[0] != embedder.dimensions:
        raise EmbeddingDimensionError(
            expected=embedder.dimensions,
            actual=int(vector.size),
            model_name=embedder.model_name,
        )
    return vector
