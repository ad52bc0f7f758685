"""
Upload → quiz pipeline.

    acquire upload → extract text → release upload → generate → validate → assemble

Acquisition, extraction and release run together in one worker thread inside a
single scoped acquisition, so none of the blocking file I/O touches the event
loop and the temporary file is gone before the slow generation call starts.
If the awaiting task is cancelled mid-extraction, the worker still finishes
its scope and removes the file.
"""

import asyncio
import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from database.models import Quiz
from generation.gpt_client import QuizGenerator
from generation.question_generator import check_question_count
from generation.quiz_assembler import assemble_quiz
from ingestion.parser import ContentExtractor
from ingestion.schemas import ExtractedContent, UploadedDocument
from ingestion.uploads import TemporaryUploadManager

log = logging.getLogger(__name__)

upload_manager = TemporaryUploadManager()
content_extractor = ContentExtractor()


def extract_upload(
    uploads: TemporaryUploadManager,
    extractor: ContentExtractor,
    data: bytes,
    media_type: str,
    owner_id: str,
    filename: Optional[str] = None,
) -> Tuple[UploadedDocument, ExtractedContent]:
    """Store, decode and release one upload. Blocking."""
    with uploads.scoped(data, media_type, owner_id, filename=filename) as document:
        content = extractor.extract(document)
    return document, content


async def generate_quiz_from_upload(
    db: Session,
    generator: QuizGenerator,
    data: bytes,
    media_type: str,
    filename: Optional[str],
    owner_id: str,
    question_count: int,
    module_id: Optional[int] = None,
    uploads: Optional[TemporaryUploadManager] = None,
    extractor: Optional[ContentExtractor] = None,
) -> Quiz:
    """
    Run one upload through the whole pipeline and return the stored quiz.

    Errors from every stage propagate unchanged (see errors.py); whichever
    stage fails, no quiz rows exist and the upload has been released.
    """
    uploads = uploads or upload_manager
    extractor = extractor or content_extractor

    # Reject a bad count before any storage is allocated
    check_question_count(question_count)

    document, content = await asyncio.to_thread(
        extract_upload, uploads, extractor, data, media_type, owner_id, filename
    )

    response = await generator.generate(content, question_count)
    quiz = assemble_quiz(db, document, response, module_id=module_id)

    log.info("pipeline: done quiz=%s document=%s attempts=%s", quiz.id, document.id, response.attempts)
    return quiz
