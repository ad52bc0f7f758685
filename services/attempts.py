"""
Quiz attempts: scoring, recording and result summaries.

Attempts are append-only rows. Every summary is computed by the database from
those rows in one grouped query, so concurrent submissions by the same user
need no coordination beyond the insert itself.
"""

import logging
from typing import List, Mapping

from sqlalchemy.orm import Session

from database import crud, schemas
from database.models import QuizAttempt, QuizQuestion
from errors import ValidationError

log = logging.getLogger(__name__)


def _check_user(user_id: str) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("A caller identity is required")
    return user_id


def _check_answers(questions: List[QuizQuestion], answers: Mapping[int, int]) -> None:
    by_id = {q.id: q for q in questions}
    for question_id, selected in answers.items():
        question = by_id.get(question_id)
        if question is None:
            raise ValidationError(f"Question {question_id} does not belong to this quiz")
        if isinstance(selected, bool) or not isinstance(selected, int):
            raise ValidationError(f"Answer for question {question_id} must be an option index")
        if not 0 <= selected < len(question.options):
            raise ValidationError(
                f"Answer {selected} for question {question_id} is out of range "
                f"(0-{len(question.options) - 1})"
            )


def score_answers(questions: List[QuizQuestion], answers: Mapping[int, int]) -> int:
    """Number of questions whose selected option is the correct one. Unanswered counts as wrong."""
    return sum(1 for q in questions if answers.get(q.id) == q.correct_index)


def record_attempt(db: Session, quiz_id: int, user_id: str, answers: Mapping[int, int]) -> QuizAttempt:
    """
    Score a submission and append it as a new attempt.

    Raises:
        ValidationError:  unknown quiz, missing identity, foreign question or bad index
        PersistenceError: the insert was rejected; no attempt is recorded
    """
    _check_user(user_id)
    questions = crud.get_quiz_questions(db, quiz_id)
    if not questions:
        raise ValidationError(f"Quiz {quiz_id} not found")

    _check_answers(questions, answers)
    score = score_answers(questions, answers)

    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        answers={str(question_id): selected for question_id, selected in answers.items()},
        score=score,
        total_questions=len(questions),
    )
    attempt = crud.append_attempt(db, attempt)

    log.info("attempt: recorded id=%s quiz=%s score=%s/%s", attempt.id, quiz_id, score, len(questions))
    return attempt


def summarize(db: Session, quiz_id: int, user_id: str) -> schemas.QuizResultSummary:
    """Attempt count, best, latest and average score for one user on one quiz"""
    _check_user(user_id)
    return crud.get_result_summary(db, quiz_id, user_id)


def summarize_quiz(db: Session, quiz_id: int) -> List[schemas.QuizResultSummary]:
    """One summary per user who attempted the quiz, best percentage first"""
    return crud.get_quiz_result_summaries(db, quiz_id)


def list_attempts(db: Session, quiz_id: int, user_id: str) -> List[QuizAttempt]:
    _check_user(user_id)
    return crud.get_attempts(db, quiz_id, user_id)
