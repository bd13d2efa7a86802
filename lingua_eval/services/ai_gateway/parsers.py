"""Decode free-text model responses into typed gateway records.

Every ``parse_*`` function raises ``ParseError`` when the response cannot be
decoded; the gateway catches it and substitutes the matching ``default_*``
record. Numeric fields are clamped and missing fields defaulted here, so a
record returned from this module is always in range.
"""
import json
import re
from typing import Any, Dict, List, Mapping, Optional

from lingua_eval.core.exceptions import ParseError
from lingua_eval.models.evaluation import clamp, clamp_score, round_half_up
from lingua_eval.models.gateway import (
    ActivityPrompt,
    ChallengeList,
    ChallengeRecord,
    DetectedError,
    ErrorList,
    FeedbackResult,
    QuestionDraft,
    QuestionSet,
    ScoreResult,
    ShortAnswerJudgment,
)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")

DEFAULT_SCORE = 70
DEFAULT_CONFIDENCE = 0.7
DEFAULT_REASONING = "Auto-generated evaluation"

TONES = ("encouraging", "constructive", "neutral")
CHALLENGE_SEVERITIES = ("high", "medium", "low")
QUESTION_TYPES = ("multiple-choice", "true-false", "short-answer")


def strip_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` wrapper, if any."""
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def extract_json(text: str) -> Dict[str, Any]:
    """Decode the outermost ``{...}`` object found in ``text``."""
    cleaned = strip_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ParseError("No JSON object in model response", {"response": cleaned[:200]})
    try:
        data = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in model response: {exc}", {"response": cleaned[:200]}) from exc
    if not isinstance(data, dict):
        raise ParseError("Model response is not a JSON object")
    return data


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-null value among ``keys`` (camelCase and snake_case aliases)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _records(data: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    items = data.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ParseError(f"'{key}' is not a list")
    return [item for item in items if isinstance(item, dict)]


def _one_of(value: Any, allowed, default: str) -> str:
    text = _text(value).lower()
    return text if text in allowed else default


# ---------- score ----------

SCORE_KEYS = {
    "overall": ("overallScore", "overall_score", "score"),
    "grammar": ("grammarScore", "grammar_score"),
    "vocabulary": ("vocabularyScore", "vocabulary_score"),
    "structure": ("structureScore", "structure_score"),
    "clarity": ("clarityScore", "clarity_score"),
}


def parse_score(text: str) -> ScoreResult:
    data = extract_json(text)
    if all(_pick(data, *keys) is None for keys in SCORE_KEYS.values()):
        raise ParseError("Score response has no score fields", {"keys": list(data)[:10]})

    def score(name: str) -> int:
        return clamp_score(_pick(data, *SCORE_KEYS[name]), default=DEFAULT_SCORE)

    def optional_score(*keys: str) -> Optional[int]:
        raw = _pick(data, *keys)
        return None if raw is None else clamp_score(raw, default=DEFAULT_SCORE)

    return ScoreResult(
        overall_score=score("overall"),
        grammar_score=score("grammar"),
        vocabulary_score=score("vocabulary"),
        structure_score=score("structure"),
        clarity_score=score("clarity"),
        pronunciation_score=optional_score("pronunciationScore", "pronunciation_score"),
        logic_score=optional_score("logicScore", "logic_score"),
        confidence=clamp(_pick(data, "confidence"), 0.0, 1.0, DEFAULT_CONFIDENCE),
        reasoning=_text(_pick(data, "reasoning"), DEFAULT_REASONING),
    )


def default_score() -> ScoreResult:
    return ScoreResult(
        overall_score=DEFAULT_SCORE,
        grammar_score=DEFAULT_SCORE,
        vocabulary_score=DEFAULT_SCORE,
        structure_score=DEFAULT_SCORE,
        clarity_score=DEFAULT_SCORE,
        confidence=DEFAULT_CONFIDENCE,
        reasoning=DEFAULT_REASONING,
        degraded=True,
    )


# ---------- errors / challenges ----------

def parse_errors(text: str) -> ErrorList:
    data = extract_json(text)
    errors = []
    for item in _records(data, "errors"):
        position = _pick(item, "position", "positionStart", "position_start")
        errors.append(DetectedError(
            error_type=_text(_pick(item, "type", "errorType", "error_type"), "grammar").lower(),
            severity=_text(_pick(item, "severity"), "minor").lower(),
            original_text=_text(_pick(item, "originalText", "original_text")),
            corrected_text=_text(_pick(item, "correctedText", "corrected_text")),
            description=_text(_pick(item, "description")),
            suggestion=_text(_pick(item, "suggestion")),
            position=int(clamp(position, 0, 10**9, 0)),
        ))
    return ErrorList(errors=errors)


def default_errors() -> ErrorList:
    return ErrorList(errors=[], degraded=True)


def parse_challenges(text: str) -> ChallengeList:
    data = extract_json(text)
    challenges = [
        ChallengeRecord(
            challenge_type=_text(_pick(item, "type", "challengeType", "challenge_type"), "general").lower(),
            pattern=_text(_pick(item, "pattern")),
            frequency=_text(_pick(item, "frequency"), "unknown"),
            severity=_one_of(_pick(item, "severity"), CHALLENGE_SEVERITIES, "medium"),
            recommendation=_text(_pick(item, "recommendation")),
        )
        for item in _records(data, "challenges")
    ]
    return ChallengeList(challenges=challenges)


def default_challenges() -> ChallengeList:
    return ChallengeList(challenges=[], degraded=True)


# ---------- feedback ----------

CANNED_FEEDBACK_TEXT = "Good effort! Continue practicing to improve your skills."


def parse_feedback(text: str) -> FeedbackResult:
    data = extract_json(text)
    feedback_text = _text(_pick(data, "feedbackText", "feedback_text", "feedback"))
    if not feedback_text:
        raise ParseError("Feedback response has no feedback text")
    return FeedbackResult(
        feedback_text=feedback_text,
        strengths=_str_list(_pick(data, "strengths")),
        improvements=_str_list(_pick(data, "improvements")),
        recommendations=_str_list(_pick(data, "recommendations")),
        next_steps=_text(_pick(data, "nextSteps", "next_steps")),
        tone=_one_of(_pick(data, "tone"), TONES, "encouraging"),
    )


def default_feedback() -> FeedbackResult:
    return FeedbackResult(
        feedback_text=CANNED_FEEDBACK_TEXT,
        strengths=["Shows understanding of the topic"],
        improvements=["Continue practicing regularly"],
        recommendations=["Review grammar rules", "Expand vocabulary", "Practice writing daily"],
        next_steps="Focus on consistent practice and review your common mistakes.",
        tone="encouraging",
        degraded=True,
    )


# ---------- short answer ----------

def snap_to_quarter(value: float) -> float:
    return round_half_up(clamp(value, 0.0, 1.0, 0.0) * 4) / 4


def parse_short_answer(text: str) -> ShortAnswerJudgment:
    data = extract_json(text)
    raw = _pick(data, "score")
    if raw is None:
        raise ParseError("Short-answer judgment has no score")
    return ShortAnswerJudgment(
        score=snap_to_quarter(raw),
        reasoning=_text(_pick(data, "reasoning")),
    )


def default_short_answer() -> ShortAnswerJudgment:
    return ShortAnswerJudgment(score=0.0, reasoning="Could not judge answer", degraded=True)


# ---------- authoring ----------

def parse_questions(text: str) -> QuestionSet:
    data = extract_json(text)
    questions = []
    for item in _records(data, "questions"):
        question_text = _text(_pick(item, "questionText", "question_text", "question"))
        correct = _text(_pick(item, "correctAnswer", "correct_answer", "answer"))
        if not question_text or not correct:
            continue
        questions.append(QuestionDraft(
            question_text=question_text,
            question_type=_one_of(_pick(item, "questionType", "question_type"), QUESTION_TYPES, "multiple-choice"),
            options=_str_list(_pick(item, "options")),
            correct_answer=correct,
            points=clamp(_pick(item, "points"), 0.0, 100.0, 1.0),
            explanation=_text(_pick(item, "explanation")),
        ))
    return QuestionSet(questions=questions)


def default_questions() -> QuestionSet:
    return QuestionSet(questions=[], degraded=True)


def parse_activity_prompt(text: str) -> ActivityPrompt:
    data = extract_json(text)
    prompt = _text(_pick(data, "prompt"))
    if not prompt:
        raise ParseError("Activity prompt response has no prompt")
    return ActivityPrompt(
        prompt=prompt,
        instructions=_text(_pick(data, "instructions")),
        guide_questions=_str_list(_pick(data, "guideQuestions", "guide_questions")),
        vocabulary_hints=_str_list(_pick(data, "vocabularyHints", "vocabulary_hints")),
        time_limit=_text(_pick(data, "timeLimit", "time_limit")),
        expected_length=_text(_pick(data, "expectedLength", "expected_length")),
        tips=_str_list(_pick(data, "tips")),
    )


def default_activity_prompt(activity_type: str, topic: str) -> ActivityPrompt:
    speaking = activity_type == "speaking"
    return ActivityPrompt(
        prompt=f"{'Talk' if speaking else 'Write'} about {topic}.",
        instructions=f"Share your thoughts and experiences about {topic}.",
        guide_questions=[
            f"What do you know about {topic}?",
            "Why is this topic important?",
            "What is your personal experience?",
        ],
        vocabulary_hints=[],
        time_limit="2 minutes" if speaking else "30 minutes",
        expected_length="1-2 minutes of speaking" if speaking else "150-250 words",
        tips=[],
        degraded=True,
    )
