"""Turns ranked chunks into a grounded answer from the LLM."""

import time
from typing import List

from loguru import logger
from pydantic import BaseModel

from studyrag.domain.chunk import RetrievedChunk
from studyrag.llms.base import LLMChat
from studyrag.llms.schemas import NOT_FOUND_ANSWER, LLMMessage
from studyrag.prompt import get_prompt

INSUFFICIENT_CONTEXT_MARKERS = ("couldn't find", "could not find", "no information")


class CitedChunk(BaseModel):
    id: str
    note_title: str
    section_path: list[str]
    course_tag: str | None = None
    content_raw: str
    similarity: float


class AnswerResult(BaseModel):
    answer: str
    insufficient_context: bool
    cited_chunks: list[CitedChunk] = []
    latency_ms: float = 0.0


def is_insufficient(answer: str) -> bool:
    """Whether the generated answer admits the notes did not contain the information."""
    lowered = answer.lower()
    return any(marker in lowered for marker in INSUFFICIENT_CONTEXT_MARKERS)


class AnswerAssembler:
    def __init__(self, chatbot: LLMChat, system_message: str | None = None) -> None:
        self.chatbot = chatbot
        self.system_message = system_message

    def answer(self, query: str, chunks: List[RetrievedChunk]) -> AnswerResult:
        """Answer the query from the given chunks only.

        With no chunks the LLM is not called and the result is flagged as
        insufficient context.
        """
        start = time.perf_counter()

        if not chunks:
            logger.info("No chunks to answer from, returning not-found answer")
            return AnswerResult(answer=NOT_FOUND_ANSWER, insufficient_context=True)

        messages = [LLMMessage(role="user", content=get_prompt(question=query, chunks=chunks))]
        if self.system_message:
            messages.insert(0, LLMMessage(role="system", content=self.system_message))

        reply = self.chatbot.chat(messages)
        insufficient = is_insufficient(reply.content)

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Answer generated from {len(chunks)} chunks in {latency_ms:.0f}ms "
            f"(insufficient context: {insufficient})"
        )
        return AnswerResult(
            answer=reply.content,
            insufficient_context=insufficient,
            cited_chunks=[
                CitedChunk(
                    id=chunk.id,
                    note_title=chunk.note_title,
                    section_path=chunk.section_path,
                    course_tag=chunk.course_tag,
                    content_raw=chunk.content_raw,
                    similarity=chunk.similarity,
                )
                for chunk in chunks
            ],
            latency_ms=latency_ms,
        )
