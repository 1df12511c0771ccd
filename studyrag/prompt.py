from typing import List

from studyrag.domain.chunk import RetrievedChunk
from studyrag.llms.schemas import NOT_FOUND_ANSWER

PROMPT_TEMPLATE = """You are answering questions using ONLY the user's notes provided below.

RULES:
- Only make claims directly supported by the provided chunks
- Cite sources as [Note: "title", Section: "section"]
- If information is insufficient, say: "{not_found}"
- DO NOT use general knowledge to fill gaps

USER'S NOTES:
{context}

QUESTION: {question}"""


def format_section_path(section_path: List[str]) -> str:
    return " > ".join(section_path) if section_path else "Main Content"


def get_context(chunks: List[RetrievedChunk]) -> str:
    return "\n\n".join(
        f'[Note: "{chunk.note_title}" | Section: "{format_section_path(chunk.section_path)}"]\n'
        f"{chunk.content_raw}\n---"
        for chunk in chunks
    )


def get_prompt(*, question: str, chunks: List[RetrievedChunk]) -> str:
    return PROMPT_TEMPLATE.format(
        not_found=NOT_FOUND_ANSWER, context=get_context(chunks), question=question
    )
