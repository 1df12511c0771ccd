from tests.fakes.fake_embedder import (
    FakeEmbedder,
    FlakyEmbedder,
    UnavailableEmbedder,
    WrongDimensionEmbedder,
)
from tests.fakes.fake_llm import FakeLLMChat
from tests.fakes.fake_token_counter import WordCounter

__all__ = [
    "FakeEmbedder",
    "FakeLLMChat",
    "FlakyEmbedder",
    "UnavailableEmbedder",
    "WordCounter",
    "WrongDimensionEmbedder",
]
