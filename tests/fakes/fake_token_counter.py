from studyrag.ingestion.token_counter import TokenCounter


class WordCounter(TokenCounter):
    """Counts whitespace-separated words, so test sizes are exact."""

    def __init__(self) -> None:
        pass

    def count(self, text: str) -> int:
        return len(text.split())
