"""CLI for chunking and embedding a folder of markdown notes into the local chunk store"""

import argparse
import hashlib
import re
import sys
from pathlib import Path

from loguru import logger

from studyrag.config import settings
from studyrag.domain.events import NoteContentChanged
from studyrag.embedders.base import Embedder
from studyrag.embedders.openai_embedder import OpenAIEmbedder
from studyrag.embedders.voyage_embedder import VoyageEmbedder
from studyrag.ingestion.index_writer import IndexWriter
from studyrag.ingestion.markdown_chunker import ChunkerOptions, MarkdownChunker
from studyrag.ingestion.reindex_job import ReindexJob
from studyrag.vector_dbs.local_db import LocalVectorDB

TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def note_id_for(path: Path, folder: Path) -> str:
    return hashlib.md5(str(path.relative_to(folder)).encode()).hexdigest()


def note_title_for(path: Path, content: str) -> str:
    match = TITLE_PATTERN.search(content)
    return match.group(1).strip() if match else path.stem


def get_embedder(provider: str) -> Embedder:
    if provider == "voyage":
        return VoyageEmbedder(api_key=settings.voyage_ai_api_key)
    return OpenAIEmbedder(api_key=settings.openai_api_key)


def main(
    in_folder: str,
    user_id: str,
    outfile_vector_db: str,
    course_tag: str | None = None,
) -> int:
    folder = Path(in_folder)
    vector_db = LocalVectorDB(filepath=outfile_vector_db, autosave=False)
    chunker = MarkdownChunker(
        ChunkerOptions(
            min_tokens=settings.chunk_min_tokens,
            target_min_tokens=settings.chunk_target_min_tokens,
            target_max_tokens=settings.chunk_target_max_tokens,
        )
    )
    job = ReindexJob(
        IndexWriter(
            embedder=get_embedder(settings.embedding_provider),
            vector_db=vector_db,
            chunker=chunker,
        ),
        max_attempts=settings.reindex_max_attempts,
        backoff_seconds=settings.reindex_backoff_seconds,
        backoff_max_seconds=settings.reindex_backoff_max_seconds,
    )

    md_files = sorted(folder.rglob("*.md"))
    logger.info(f"Found {len(md_files)} markdown files in {folder}")

    failed = 0
    for path in md_files:
        content = path.read_text(encoding="utf-8")
        outcome = job.run(
            NoteContentChanged(
                note_id=note_id_for(path, folder),
                owner_user_id=user_id,
                title=note_title_for(path, content),
                content=content,
                course_tag=course_tag,
            )
        )
        if outcome.status == "failed":
            failed += 1

    vector_db.save()
    logger.info(f"Indexed {len(md_files) - failed} notes into {outfile_vector_db}")
    if failed:
        logger.error(f"{failed} notes could not be indexed")
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--in-folder", type=str, required=True, help="Folder containing markdown files"
    )
    parser.add_argument(
        "--user-id", type=str, required=True, help="Owner of the indexed notes"
    )
    parser.add_argument(
        "--course-tag", type=str, required=False, help="Course tag applied to every note"
    )
    parser.add_argument(
        "--outfile-vector-db",
        type=str,
        required=False,
        help="Local output chunk store file",
        default=settings.local_vector_db_path,
    )

    args = parser.parse_args()

    sys.exit(
        main(
            in_folder=args.in_folder,
            user_id=args.user_id,
            outfile_vector_db=args.outfile_vector_db,
            course_tag=args.course_tag,
        )
    )
