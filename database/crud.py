"""
CRUD operations for quizzes and attempts
All database operations go through these functions

Writes either commit as a unit or roll back and raise PersistenceError.
Result summaries are computed by the database in one grouped query.
"""

import logging
from typing import List, Optional

from sqlalchemy import Float, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased, selectinload

from database import models, schemas
from errors import PersistenceError

log = logging.getLogger(__name__)


# ==========================================
# QUIZ CRUD
# ==========================================

def create_quiz(db: Session, quiz: models.Quiz, questions: List[models.QuizQuestion]) -> models.Quiz:
    """
    Insert a quiz and all of its questions in one commit.

    Nothing is visible to other sessions until the commit succeeds; on any
    store error the session is rolled back and PersistenceError is raised.
    """
    quiz.questions = list(questions)
    db.add(quiz)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("persist: quiz insert rejected document=%s error=%s", quiz.source_document_id, type(e).__name__)
        raise PersistenceError(
            f"Quiz could not be saved: {type(e).__name__}",
            document_id=quiz.source_document_id,
        ) from e
    db.refresh(quiz)
    return quiz


def get_quiz(db: Session, quiz_id: int) -> Optional[models.Quiz]:
    """Get quiz by ID with its questions loaded"""
    return db.query(models.Quiz).options(
        selectinload(models.Quiz.questions)
    ).filter(models.Quiz.id == quiz_id).first()


def get_quiz_questions(db: Session, quiz_id: int) -> List[models.QuizQuestion]:
    """Get a quiz's questions in order"""
    return db.query(models.QuizQuestion).filter(
        models.QuizQuestion.quiz_id == quiz_id
    ).order_by(models.QuizQuestion.position).all()


def count_quiz_questions(db: Session, quiz_id: int) -> int:
    return db.query(func.count(models.QuizQuestion.id)).filter(
        models.QuizQuestion.quiz_id == quiz_id
    ).scalar() or 0


# ==========================================
# ATTEMPT CRUD
# ==========================================

def append_attempt(db: Session, attempt: models.QuizAttempt) -> models.QuizAttempt:
    """Insert one attempt row. Attempts are never updated afterwards."""
    db.add(attempt)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(
            "persist: attempt insert rejected quiz=%s user=%s error=%s",
            attempt.quiz_id, attempt.user_id, type(e).__name__,
        )
        raise PersistenceError(f"Attempt could not be saved: {type(e).__name__}") from e
    db.refresh(attempt)
    return attempt


def get_attempts(db: Session, quiz_id: int, user_id: str) -> List[models.QuizAttempt]:
    """Get a user's attempts for a quiz, newest first"""
    return db.query(models.QuizAttempt).filter(
        models.QuizAttempt.quiz_id == quiz_id,
        models.QuizAttempt.user_id == user_id,
    ).order_by(models.QuizAttempt.created_at.desc(), models.QuizAttempt.id.desc()).all()


# ==========================================
# RESULT AGGREGATION
# ==========================================

def _percentage():
    """Per-attempt score as 0-100, evaluated in SQL"""
    return cast(models.QuizAttempt.score, Float) * 100.0 / models.QuizAttempt.total_questions


def _summary_query(db: Session):
    """
    Grouped aggregation over quiz_attempts, one row per (quiz_id, user_id).

    The latest score is a correlated subquery inside the same statement, so a
    summary is always a single round trip served by ix_quiz_attempts_quiz_user.
    """
    Attempt = models.QuizAttempt
    newer = aliased(models.QuizAttempt)
    percentage = _percentage()

    latest_score = (
        select(newer.score)
        .where(newer.quiz_id == Attempt.quiz_id, newer.user_id == Attempt.user_id)
        .order_by(newer.created_at.desc(), newer.id.desc())
        .limit(1)
        .correlate(Attempt)
        .scalar_subquery()
    )

    return db.query(
        Attempt.quiz_id,
        Attempt.user_id,
        func.count(Attempt.id).label("attempt_count"),
        func.max(Attempt.score).label("best_score"),
        func.avg(Attempt.score).label("average_score"),
        func.max(percentage).label("best_percentage"),
        func.avg(percentage).label("average_percentage"),
        latest_score.label("latest_score"),
    ).group_by(Attempt.quiz_id, Attempt.user_id)


def _row_to_summary(row) -> schemas.QuizResultSummary:
    return schemas.QuizResultSummary(
        quiz_id=row.quiz_id,
        user_id=row.user_id,
        attempt_count=row.attempt_count,
        best_score=row.best_score,
        latest_score=row.latest_score,
        average_score=round(float(row.average_score), 2),
        best_percentage=round(float(row.best_percentage), 2),
        average_percentage=round(float(row.average_percentage), 2),
    )


def get_result_summary(db: Session, quiz_id: int, user_id: str) -> schemas.QuizResultSummary:
    """Aggregate summary for one (quiz, user) pair; zero attempts gives an empty summary"""
    row = _summary_query(db).filter(
        models.QuizAttempt.quiz_id == quiz_id,
        models.QuizAttempt.user_id == user_id,
    ).one_or_none()
    if row is None:
        return schemas.QuizResultSummary(quiz_id=quiz_id, user_id=user_id)
    return _row_to_summary(row)


def get_quiz_result_summaries(db: Session, quiz_id: int) -> List[schemas.QuizResultSummary]:
    """Aggregate summaries for every user who attempted a quiz, best first"""
    rows = _summary_query(db).filter(
        models.QuizAttempt.quiz_id == quiz_id,
    ).order_by(
        func.max(_percentage()).desc(),
        models.QuizAttempt.user_id,
    ).all()
    return [_row_to_summary(row) for row in rows]
