"""
SQLAlchemy models for generated quizzes and attempts
Quiz → QuizQuestion, and the append-only QuizAttempt log

Uploaded documents are NOT stored here: they live only for the duration of
one pipeline invocation. A quiz keeps the document's identifier for traceability.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database.database import Base


# ==========================================
# QUIZZES
# ==========================================

class Quiz(Base):
    """
    A quiz generated from one uploaded document.
    Written together with all of its questions in a single commit.
    """
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, nullable=True, index=True)  # owning course module (external)
    source_document_id = Column(String(36), nullable=False, index=True)
    source_filename = Column(String(255), nullable=True)
    source_media_type = Column(String(100), nullable=False)
    created_by = Column(String(255), nullable=False, index=True)  # normalized caller identity
    model_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, document='{self.source_document_id}', questions={len(self.questions)})>"


class QuizQuestion(Base):
    """One multiple-choice question. `correct_index` points into `options`."""
    __tablename__ = "quiz_questions"
    __table_args__ = (
        UniqueConstraint("quiz_id", "position", name="uq_quiz_questions_position"),
        CheckConstraint("correct_index >= 0", name="ck_quiz_questions_correct_index"),
    )

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0-based order inside the quiz
    prompt = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # ["option text", ...], at least 2
    correct_index = Column(Integer, nullable=False)
    explanation = Column(Text, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")

    def __repr__(self):
        return f"<QuizQuestion(id={self.id}, quiz_id={self.quiz_id}, position={self.position})>"


# ==========================================
# ATTEMPTS
# ==========================================

class QuizAttempt(Base):
    """
    One submitted attempt. Rows are only ever inserted; summaries are computed
    by aggregating over them, never kept in a running counter.
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("ix_quiz_attempts_quiz_user", "quiz_id", "user_id"),
        CheckConstraint("score >= 0 AND score <= total_questions", name="ck_quiz_attempts_score_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False)
    answers = Column(JSON, nullable=False)  # {"<question_id>": <selected option index>}
    score = Column(Integer, nullable=False)  # number of correct answers
    total_questions = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    quiz = relationship("Quiz")

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, user='{self.user_id}', score={self.score}/{self.total_questions})>"
