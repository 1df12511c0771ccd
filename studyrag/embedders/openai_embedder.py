import numpy as np
import openai
from openai import OpenAI

from studyrag.errors import EmbeddingProviderError


class OpenAIEmbedder:
    max_batch_size = 2048

    def __init__(
        self,
        api_key: str,
        model_name: str = "text-embedding-3-small",
        dimensions: int = 1536,
    ):
        self.openai_client = OpenAI(api_key=api_key)
        self.model_name = model_name
        self.dimensions = dimensions

    def embed(self, text: str) -> np.ndarray:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        if len(texts) > self.max_batch_size:
            raise ValueError(
                f"Too many texts to embed in one batch: {len(texts)} (max {self.max_batch_size})"
            )

        try:
            response = self.openai_client.embeddings.create(input=texts, model=self.model_name)
        except openai.APIError as e:
            raise EmbeddingProviderError(f"OpenAI embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        return [np.array(item.embedding, dtype=np.float32) for item in data]
