from typing import List, Literal, Optional

from pydantic import BaseModel, Field

NOT_FOUND_ANSWER = "I couldn't find this in your notes."


class LLMMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class SourceReference(BaseModel):
    """A note section that supports part of the answer"""

    note_title: str = Field(..., description="The title of the cited note")
    section: str = Field(..., description="The section of the note, as given in the context")


class CitedClaim(BaseModel):
    """A claim made in the answer, with the note sections it is grounded in"""

    text: str = Field(
        ...,
        description=(
            "A statement answering part of the question, supported directly by the notes. "
            "Quotes should be in markdown blockquotes `>`"
        ),
    )
    sources: List[SourceReference] = Field(..., description="The note sections backing the claim")

    @property
    def answer(self) -> str:
        citations = " ".join(
            f'[Note: "{source.note_title}", Section: "{source.section}"]'
            for source in self.sources
        )
        return f"{self.text} {citations}".strip()


class AssistantResponse(BaseModel):
    """Structured answer grounded only in the provided note chunks"""

    summary: str = Field(..., description="A short direct answer to the question.")
    claims: List[CitedClaim] = Field(
        ..., description="Supporting details from the notes, each with its citations"
    )
    no_information: bool = Field(
        description="True if the notes do not contain enough information to answer"
    )

    @property
    def answer(self) -> str:
        """
        The answer text, or the fixed not-found sentence when the notes were insufficient
        """

        if self.no_information:
            return NOT_FOUND_ANSWER
        lines = [self.summary] if self.summary else []
        if self.claims:
            lines.append("")
            for claim in self.claims:
                lines.append(f"- {claim.answer}")
        return "\n".join(lines)
