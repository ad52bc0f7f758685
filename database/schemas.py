"""
Pydantic schemas for request/response validation
Separate from SQLAlchemy models for clean API contracts
"""

from pydantic import BaseModel, Field, ConfigDict, StrictInt
from typing import Optional, List, Dict
from datetime import datetime


# ==========================================
# QUIZ SCHEMAS
# ==========================================

class QuestionPublic(BaseModel):
    """Question as shown to a learner: no correct answer, no explanation"""
    id: int
    position: int
    prompt: str
    options: List[str]

    model_config = ConfigDict(from_attributes=True)


class QuizPublic(BaseModel):
    """Quiz as shown to a learner"""
    id: int
    module_id: Optional[int] = None
    source_document_id: str
    source_filename: Optional[str] = None
    created_at: Optional[datetime] = None
    questions: List[QuestionPublic]

    model_config = ConfigDict(from_attributes=True)


class QuizCreated(BaseModel):
    """Response after a quiz is generated and committed"""
    id: int
    source_document_id: str
    total_questions: int


# ==========================================
# ATTEMPT SCHEMAS
# ==========================================

class AttemptSubmit(BaseModel):
    """Submitted answers: question id → selected option index"""
    answers: Dict[int, StrictInt] = Field(default_factory=dict, description="question_id -> option index")


class AttemptResponse(BaseModel):
    """Schema for a recorded attempt"""
    id: int
    quiz_id: int
    user_id: str
    score: int
    total_questions: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QuizResultSummary(BaseModel):
    """
    Per (quiz, user) aggregate over recorded attempts.
    Scores are raw correct-answer counts; *_percentage fields are 0-100.
    Score fields are None when there are no attempts.
    """
    quiz_id: int
    user_id: str
    attempt_count: int = 0
    best_score: Optional[int] = None
    latest_score: Optional[int] = None
    average_score: Optional[float] = None
    best_percentage: Optional[float] = None
    average_percentage: Optional[float] = None
