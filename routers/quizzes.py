"""
Quizzes router.
Upload a document to generate a quiz, take it, and read results.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from auth.identity import IdentityResolver, SessionContext
from auth.security import CLAIMS_HEADER, decode_forwarded_claims
from database import crud
from database.database import get_db
from database.schemas import AttemptResponse, AttemptSubmit, QuizCreated, QuizPublic, QuizResultSummary
from errors import QuizPipelineError, ValidationError
from generation.gpt_client import QuizGenerator
from services import attempts as attempt_service
from services import pipeline

log = logging.getLogger(__name__)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


# ─── Error mapping ─────────────────────────────────────────────────────────────

STATUS_BY_KIND = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "unsupported_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    "empty_content": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "schema_validation_error": status.HTTP_502_BAD_GATEWAY,
    "generation_service_error": status.HTTP_503_SERVICE_UNAVAILABLE,
    "persistence_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "storage_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "configuration_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _to_http(e: QuizPipelineError) -> HTTPException:
    detail = {"kind": e.kind, "message": e.message}
    if e.document_id:
        detail["document_id"] = e.document_id
    issues = getattr(e, "issues", None)
    if issues:
        detail["issues"] = issues
    return HTTPException(status_code=STATUS_BY_KIND.get(e.kind, 500), detail=detail)


# ─── Dependencies ──────────────────────────────────────────────────────────────

def get_generator(request: Request) -> QuizGenerator:
    generator = getattr(request.app.state, "generator", None)
    if generator is None:
        raise HTTPException(status_code=503, detail="Quiz generation is not configured")
    return generator


def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity_resolver


def get_current_user(
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    context = SessionContext(
        authorization=request.headers.get("authorization"),
        claims=decode_forwarded_claims(request.headers.get(CLAIMS_HEADER)),
    )
    try:
        return resolver.resolve(context)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def _require_quiz(db: Session, quiz_id: int):
    quiz = crud.get_quiz(db, quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail=f"Quiz {quiz_id} not found")
    return quiz


# ─── Generate ──────────────────────────────────────────────────────────────────

@router.post("/generate", response_model=QuizCreated, status_code=status.HTTP_201_CREATED)
async def generate_quiz(
    file: UploadFile = File(..., description="Course material (TXT, MD, PDF, DOCX, PPTX)"),
    question_count: int = Form(5, description="Number of questions to generate"),
    module_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    generator: QuizGenerator = Depends(get_generator),
    user_id: str = Depends(get_current_user),
):
    """Upload a document and generate a quiz from its text."""
    # One byte past the limit is enough to reject; never buffer a huge body
    data = await file.read(pipeline.upload_manager.max_size + 1)
    try:
        quiz = await pipeline.generate_quiz_from_upload(
            db,
            generator,
            data=data,
            media_type=file.content_type or "",
            filename=file.filename,
            owner_id=user_id,
            question_count=question_count,
            module_id=module_id,
        )
    except QuizPipelineError as e:
        log.warning("generate: failed kind=%s document=%s", e.kind, e.document_id)
        raise _to_http(e) from e

    return QuizCreated(id=quiz.id, source_document_id=quiz.source_document_id, total_questions=len(quiz.questions))


# ─── Read ──────────────────────────────────────────────────────────────────────

@router.get("/{quiz_id}", response_model=QuizPublic)
def get_quiz(quiz_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    """Quiz with its questions; correct answers are never included."""
    return _require_quiz(db, quiz_id)


# ─── Attempts ──────────────────────────────────────────────────────────────────

@router.post("/{quiz_id}/attempts", response_model=AttemptResponse, status_code=status.HTTP_201_CREATED)
def submit_attempt(
    quiz_id: int,
    body: AttemptSubmit,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    _require_quiz(db, quiz_id)
    try:
        return attempt_service.record_attempt(db, quiz_id, user_id, body.answers)
    except QuizPipelineError as e:
        raise _to_http(e) from e


@router.get("/{quiz_id}/attempts", response_model=List[AttemptResponse])
def list_my_attempts(quiz_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    _require_quiz(db, quiz_id)
    return attempt_service.list_attempts(db, quiz_id, user_id)


@router.get("/{quiz_id}/summary", response_model=QuizResultSummary)
def get_my_summary(quiz_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    """Caller's attempt count, best/latest/average score on this quiz."""
    _require_quiz(db, quiz_id)
    return attempt_service.summarize(db, quiz_id, user_id)


@router.get("/{quiz_id}/results", response_model=List[QuizResultSummary])
def get_quiz_results(quiz_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    """Every learner's summary for this quiz, best first. Quiz owner only."""
    quiz = _require_quiz(db, quiz_id)
    if quiz.created_by != user_id:
        log.warning("results: denied quiz=%s", quiz_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the quiz owner can read results")
    return attempt_service.summarize_quiz(db, quiz_id)
