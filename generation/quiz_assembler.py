"""
Quiz Assembly

Turns a validated GenerationResponse into a persisted Quiz. The quiz row and
all of its question rows are written in one transaction: a reader sees the
whole quiz or nothing.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from database import crud, models
from errors import SchemaValidationError, ValidationError
from generation.schemas import GeneratedQuestion, GenerationResponse
from generation.validator import validate_questions
from ingestion.schemas import UploadedDocument

log = logging.getLogger(__name__)


def _to_rows(questions: List[GeneratedQuestion]) -> List[models.QuizQuestion]:
    return [
        models.QuizQuestion(
            position=position,
            prompt=question.prompt,
            options=list(question.options),
            correct_index=question.correct_index,
            explanation=question.explanation,
        )
        for position, question in enumerate(questions)
    ]


def assemble_quiz(
    db: Session,
    document: UploadedDocument,
    response: GenerationResponse,
    module_id: Optional[int] = None,
) -> models.Quiz:
    """
    Persist a quiz built from generated questions.

    Questions are re-checked against the schema before anything is written,
    so a response built by hand (or by another generator) cannot bypass it.

    Args:
        db:        Open session; committed or rolled back here
        document:  The upload the questions were generated from
        response:  Generation result for that upload
        module_id: Optional owning course module

    Returns:
        The stored Quiz with its questions in generated order

    Raises:
        ValidationError:       response belongs to a different document
        SchemaValidationError: a question violates the schema
        PersistenceError:      the store rejected the write; nothing was saved
    """
    if response.document_id != document.id:
        raise ValidationError(
            f"Generation result is for document {response.document_id}",
            document_id=document.id,
        )

    if not response.questions:
        raise SchemaValidationError("Generation result has no questions", issues=["questions: empty"], document_id=document.id)
    questions = validate_questions(list(response.questions), document_id=document.id)

    quiz = models.Quiz(
        module_id=module_id,
        source_document_id=document.id,
        source_filename=document.filename,
        source_media_type=document.media_type,
        created_by=document.owner_id,
        model_name=response.model,
    )
    quiz = crud.create_quiz(db, quiz, _to_rows(questions))

    log.info("assemble: stored quiz=%s document=%s questions=%s", quiz.id, document.id, len(questions))
    return quiz
