import numpy as np
import voyageai
from voyageai.error import VoyageError

from studyrag.errors import EmbeddingProviderError


class VoyageEmbedder:
    max_batch_size = 128

    def __init__(self, api_key: str, model_name: str = "voyage-3", dimensions: int = 1024):
        self.client = voyageai.Client(api_key=api_key)
        self.model_name = model_name
        self.dimensions = dimensions

    def embed(self, text: str) -> np.ndarray:
        return self._embed([text], input_type="query")[0]

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        if len(texts) > self.max_batch_size:
            raise ValueError(
                f"Too many texts to embed in one batch: {len(texts)} (max {self.max_batch_size})"
            )
        return self._embed(texts, input_type="document")

    def _embed(self, texts: list[str], input_type: str) -> list[np.ndarray]:
        try:
            result = self.client.embed(texts=texts, model=self.model_name, input_type=input_type)
        except VoyageError as e:
            raise EmbeddingProviderError(f"Voyage embedding request failed: {e}") from e
        return [np.array(embedding, dtype=np.float32) for embedding in result.embeddings]
