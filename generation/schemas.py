"""
Pydantic schemas for the quiz generation pipeline.

GeneratedQuestion is the trust boundary for model output: it is validated in
strict mode, so "2" is not an index and [0, 2] is not a single correct answer.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


# ─── Generation output types ───────────────────────────────────────────────────

class GeneratedQuestion(BaseModel):
    """One multiple-choice question as returned by the generation service."""

    model_config = ConfigDict(strict=True, str_strip_whitespace=True, extra="ignore")

    prompt: str = Field(..., min_length=1, description="Question stem")
    options: List[str] = Field(..., min_length=2, description="Answer options in display order")
    correct_index: int = Field(..., description="0-based index into options")
    explanation: Optional[str] = Field(None, description="Why the correct option is correct")

    @model_validator(mode="after")
    def _check_options(self) -> "GeneratedQuestion":
        if any(not option.strip() for option in self.options):
            raise ValueError("options must not be blank")
        normalized = [option.strip().lower() for option in self.options]
        if len(set(normalized)) != len(normalized):
            raise ValueError("options must be distinct")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )
        return self


class GenerationRequest(BaseModel):
    """What is sent to the generation service for one document."""
    document_id: str
    question_count: int = Field(..., ge=1)
    prompt: str = Field(..., repr=False)


class GenerationResponse(BaseModel):
    """Validated result of one generation call."""
    document_id: str
    question_count_requested: int
    questions: List[GeneratedQuestion] = Field(..., min_length=1)
    model: Optional[str] = None
    attempts: int = 1
    raw_payload: str = Field("", repr=False)
