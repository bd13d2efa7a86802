# lingua_eval/models/gateway.py
"""Typed records decoded from model responses.

Every record carries ``degraded``: true when the gateway could not decode the
response and substituted its documented default.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class ScoreResult(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    grammar_score: int = Field(ge=0, le=100)
    vocabulary_score: int = Field(ge=0, le=100)
    structure_score: int = Field(ge=0, le=100)
    clarity_score: int = Field(ge=0, le=100)
    pronunciation_score: Optional[int] = Field(default=None, ge=0, le=100)
    logic_score: Optional[int] = Field(default=None, ge=0, le=100)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    degraded: bool = False


class DetectedError(BaseModel):
    error_type: str = "grammar"
    severity: str = "minor"
    original_text: str = ""
    corrected_text: str = ""
    description: str = ""
    suggestion: str = ""
    position: int = 0


class ErrorList(BaseModel):
    errors: List[DetectedError] = Field(default_factory=list)
    degraded: bool = False


class ChallengeRecord(BaseModel):
    challenge_type: str = "general"
    pattern: str = ""
    frequency: str = "unknown"
    severity: str = "medium"
    recommendation: str = ""


class ChallengeList(BaseModel):
    challenges: List[ChallengeRecord] = Field(default_factory=list)
    degraded: bool = False


class FeedbackResult(BaseModel):
    feedback_text: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    next_steps: str = ""
    tone: str = "encouraging"
    degraded: bool = False


class ShortAnswerJudgment(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    degraded: bool = False


class QuestionDraft(BaseModel):
    question_text: str
    question_type: str = "multiple-choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: str
    points: float = 1.0
    explanation: str = ""


class QuestionSet(BaseModel):
    questions: List[QuestionDraft] = Field(default_factory=list)
    degraded: bool = False


class ActivityPrompt(BaseModel):
    prompt: str
    instructions: str = ""
    guide_questions: List[str] = Field(default_factory=list)
    vocabulary_hints: List[str] = Field(default_factory=list)
    time_limit: str = ""
    expected_length: str = ""
    tips: List[str] = Field(default_factory=list)
    degraded: bool = False
