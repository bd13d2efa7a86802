# lingua_eval/models/submission.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

Level = Literal["A1", "A2", "B1", "B2", "C1", "C2"]
LEVELS: Tuple[str, ...] = ("A1", "A2", "B1", "B2", "C1", "C2")
DEFAULT_LEVEL = "B1"

ContentType = Literal["speaking", "writing", "quiz"]
CONTENT_TYPES: Tuple[str, ...] = ("speaking", "writing", "quiz")

SubmissionStatus = Literal["pending", "evaluating", "completed", "failed"]
QuestionType = Literal["multiple-choice", "true-false", "short-answer"]

# status -> statuses it may move to
ALLOWED_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("evaluating",),
    "evaluating": ("completed", "failed"),
    "failed": ("evaluating",),
    "completed": (),
}


def normalize_level(value: Any) -> str:
    """Map any declared level onto one of the six bands (unknown -> B1)."""
    level = str(value or "").strip().upper()
    if level in LEVELS:
        return level
    if level:
        logger.warning(f"Unknown proficiency level '{value}', using {DEFAULT_LEVEL}")
    return DEFAULT_LEVEL


class RubricCriterion(BaseModel):
    name: str
    weight: float = Field(ge=0.0, le=1.0)
    description: str = ""


class Rubric(BaseModel):
    """Instructor rubric; weights summing to 1.0 is the owning store's job."""
    name: str = "rubric"
    criteria: List[RubricCriterion] = Field(default_factory=list)


class QuizQuestion(BaseModel):
    question_text: str
    question_type: QuestionType = "multiple-choice"
    correct_answer: str
    points: float = Field(default=1.0, ge=0.0)
    options: List[str] = Field(default_factory=list)
    explanation: str = ""


class QuizAnswer(BaseModel):
    answer: str = ""


class SubmissionContent(BaseModel):
    text: Optional[str] = None
    transcript: Optional[str] = None
    duration: Optional[float] = Field(default=None, ge=0.0, description="Speaking duration in seconds")
    word_count: Optional[int] = Field(default=None, ge=0)
    answers: List[QuizAnswer] = Field(default_factory=list)


class Submission(BaseModel):
    submission_id: str
    student_id: str
    # Kept as a plain string: an unknown type is a ConfigurationError raised by the engine
    content_type: str
    content: SubmissionContent = Field(default_factory=SubmissionContent)
    proficiency_level: str = DEFAULT_LEVEL
    status: SubmissionStatus = "pending"
    rubric: Optional[Rubric] = None
    questions: List[QuizQuestion] = Field(default_factory=list)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("proficiency_level", mode="before")
    @classmethod
    def _normalize_level(cls, v):
        return normalize_level(v)

    @field_validator("rubric", mode="before")
    @classmethod
    def _tolerate_bad_rubric(cls, v):
        """Malformed rubric data is treated as absent."""
        if v is None or isinstance(v, Rubric):
            return v
        try:
            return Rubric.model_validate(v)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Ignoring malformed rubric: {exc}")
            return None

    def primary_text(self) -> str:
        """Text the language checks run on: essay text or speaking transcript."""
        return (self.content.text or self.content.transcript or "").strip()
