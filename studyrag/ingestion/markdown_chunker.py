"""Chunking service that turns markdown notes into retrievable, section-aware chunks."""

import re
from typing import NamedTuple

from pydantic import BaseModel

from studyrag.domain.chunk import ChunkDraft

from .token_counter import TokenCounter

HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
# Any whitespace after a period, including newlines, ends a sentence; the period stays
SENTENCE_BREAK = re.compile(r"(?<=\.)\s+")


class ChunkerOptions(BaseModel):
    min_tokens: int = 80  # below this a chunk is a merge candidate
    target_min_tokens: int = 250
    target_max_tokens: int = 350  # soft ceiling before forced splitting
    tiny_fragment_tokens: int = 40  # fragments this small may merge across sections


class _Section(NamedTuple):
    level: int
    header: str
    lines: list[str]


class _Piece(NamedTuple):
    text: str
    section_path: list[str]
    tokens: int


def build_content_embed(
    *, note_title: str, section_path: list[str], course_tag: str | None, content_raw: str
) -> str:
    """Prefix chunk text with the note context that is embedded alongside it."""
    section = " > ".join(section_path) if section_path else "Main"
    course = f" | Course: {course_tag}" if course_tag else ""
    return f"Title: {note_title} | Section: {section}{course}\n\n{content_raw}"


class MarkdownChunker:
    """Service for splitting markdown notes into chunks sized for embedding."""

    def __init__(
        self,
        options: ChunkerOptions | None = None,
        token_counter: TokenCounter | None = None,
    ):
        """Initialize the chunker.

        Args:
            options: Token thresholds driving splitting and merging
            token_counter: Tokenizer used for all size decisions
        """
        self.options = options or ChunkerOptions()
        self.token_counter = token_counter or TokenCounter()

    def chunk_note(
        self,
        *,
        note_id: str,
        note_title: str,
        content: str,
        course_tag: str | None = None,
    ) -> list[ChunkDraft]:
        """Split a note into ordered chunk drafts.

        Args:
            note_id: ID of the note being chunked
            note_title: Title stored on every chunk and used in the embedding header
            content: Markdown content of the note
            course_tag: Optional course the note belongs to

        Returns:
            Chunk drafts in note order; empty only for empty or whitespace-only content
        """
        if not content.strip():
            return []

        sections = self._parse_sections(content)

        if self._count(content.strip()) < self.options.target_min_tokens:
            pieces = [self._whole_note_piece(content, sections)]
        else:
            pieces = self._merge_small_pieces(self._section_pieces(sections))
            # A note made only of headers still yields one chunk
            if not pieces:
                pieces = [self._whole_note_piece(content, sections)]

        return [
            ChunkDraft(
                note_id=note_id,
                note_title=note_title,
                section_path=piece.section_path,
                course_tag=course_tag,
                content_raw=piece.text,
                content_embed=build_content_embed(
                    note_title=note_title,
                    section_path=piece.section_path,
                    course_tag=course_tag,
                    content_raw=piece.text,
                ),
                chunk_index=chunk_index,
            )
            for chunk_index, piece in enumerate(pieces)
        ]

    def _count(self, text: str) -> int:
        return self.token_counter.count(text)

    def _section_pieces(self, sections: list[_Section]) -> list[_Piece]:
        """One piece per non-empty section, oversized sections split further."""
        pieces: list[_Piece] = []

        for index, section in enumerate(sections):
            body = "\n".join(section.lines).strip()
            if not body:
                continue

            section_path = self._build_section_path(sections, index)
            tokens = self._count(body)

            if tokens > self.options.target_max_tokens:
                for part in self._split_large_section(body):
                    pieces.append(_Piece(part, section_path, self._count(part)))
            else:
                pieces.append(_Piece(body, section_path, tokens))

        return pieces

    def _whole_note_piece(self, content: str, sections: list[_Section]) -> _Piece:
        """The whole note as a single piece.

        The text is everything outside header lines, or the raw note when it is only
        headers. The path is that of the first section holding text, else of the
        first header.
        """
        body = "\n".join(line for section in sections for line in section.lines).strip()
        text = body or content.strip()

        labelled = [i for i, s in enumerate(sections) if "\n".join(s.lines).strip()]
        labelled = labelled or [i for i, s in enumerate(sections) if s.header]
        section_path = self._build_section_path(sections, labelled[0]) if labelled else []

        return _Piece(text, section_path, self._count(text))

    @staticmethod
    def _parse_sections(content: str) -> list[_Section]:
        """Split markdown into header-delimited sections.

        Text before the first header lands in a level-0 section with no header text.
        """
        sections = []
        current = _Section(level=0, header="", lines=[])

        for line in content.splitlines():
            match = HEADER_PATTERN.match(line)
            if match:
                sections.append(current)
                current = _Section(
                    level=len(match.group(1)), header=match.group(2).strip(), lines=[]
                )
            else:
                current.lines.append(line)

        sections.append(current)
        return sections

    @staticmethod
    def _build_section_path(sections: list[_Section], index: int) -> list[str]:
        """Collect enclosing headers outermost first, ending with the section's own header."""
        section = sections[index]
        path = [section.header] if section.header else []
        level = section.level

        for previous in reversed(sections[:index]):
            if previous.level < level:
                level = previous.level
                if previous.header:
                    path.insert(0, previous.header)

        return path

    def _split_large_section(self, text: str) -> list[str]:
        """Split on paragraphs, then split still-oversized pieces on sentences."""
        paragraphs = [p.strip() for p in PARAGRAPH_BREAK.split(text) if p.strip()]
        hard_ceiling = self.options.target_max_tokens * 1.5

        result = []
        for piece in self._accumulate(paragraphs, separator="\n\n"):
            if self._count(piece) > hard_ceiling:
                sentences = [s.strip() for s in SENTENCE_BREAK.split(piece) if s.strip()]
                result.extend(self._accumulate(sentences, separator=" "))
            else:
                result.append(piece)

        return result or [text]

    def _accumulate(self, parts: list[str], *, separator: str) -> list[str]:
        """Greedily pack parts into pieces, flushing before the ceiling is exceeded."""
        pieces = []
        current = ""

        for part in parts:
            candidate = f"{current}{separator}{part}" if current else part
            if current and self._count(candidate) > self.options.target_max_tokens:
                pieces.append(current)
                current = part
            else:
                current = candidate

        if current:
            pieces.append(current)

        return pieces

    def _merge_small_pieces(self, pieces: list[_Piece]) -> list[_Piece]:
        """Single left-to-right pass merging undersized pieces into their successor.

        A merged piece is not considered again, so at most two pieces are ever combined.
        """
        merged = []
        merge_ceiling = self.options.target_max_tokens * 1.2
        i = 0

        while i < len(pieces):
            piece = pieces[i]

            if piece.tokens < self.options.min_tokens and i < len(pieces) - 1:
                next_piece = pieces[i + 1]
                combined = f"{piece.text}\n\n{next_piece.text}"
                combined_tokens = self._count(combined)

                same_section = piece.section_path == next_piece.section_path
                tiny = piece.tokens < self.options.tiny_fragment_tokens

                if combined_tokens <= merge_ceiling and (same_section or tiny):
                    merged.append(_Piece(combined, piece.section_path, combined_tokens))
                    i += 2
                    continue

            merged.append(piece)
            i += 1

        return merged
