from typing import List, Protocol

from studyrag.llms.schemas import LLMMessage


class LLMChat(Protocol):
    def chat(self, messages: List[LLMMessage]) -> LLMMessage: ...
