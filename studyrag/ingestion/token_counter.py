import tiktoken


class TokenCounter:
    """Counts tokens with the tokenizer family used by the embedding model.

    Holds no mutable state after construction, so one instance can be shared by
    chunkers running on several threads.
    """

    def __init__(self, model: str = "gpt-4"):
        self.enc = tiktoken.encoding_for_model(model)

    def count(self, text: str) -> int:
        return len(self.enc.encode(text, disallowed_special=()))
