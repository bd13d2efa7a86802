import logging
import re
from collections import Counter
from typing import List, Optional, Sequence

from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import ConfigurationError
from lingua_eval.models.evaluation import ERROR_TYPES, SEVERITIES, Challenge, Evaluation, Mistake, clamp, round_half_up
from lingua_eval.models.submission import Submission
from lingua_eval.services.ai_gateway.gateway import AIGateway
from lingua_eval.services.evaluation import rules
from lingua_eval.services.evaluation.resilience import ResilientStrategy, reject_degraded
from lingua_eval.storage.base import EvaluationStore

logger = logging.getLogger(__name__)

CHALLENGE_THRESHOLD = 0.3
HIGH_SEVERITY_THRESHOLD = 0.6
PRONUNCIATION_NOTE_THRESHOLD = 70
SHORT_RESPONSE_SECONDS = 60

CHALLENGE_RECOMMENDATIONS = {
    "grammar": "Review grammar rules and practice with exercises",
    "vocabulary": "Expand vocabulary through reading and word lists",
    "pronunciation": "Practice pronunciation with audio resources",
    "spelling": "Use spell-check tools and memorize common patterns",
    "punctuation": "Study punctuation rules and apply consistently",
    "logic": "Improve analytical thinking and problem-solving skills",
}
DEFAULT_RECOMMENDATION = "Continue practicing and reviewing fundamentals"

_PERCENT_RE = re.compile(r"\d+(?:\.\d+)?")


def map_error_type(value: Optional[str]) -> str:
    value = (value or "").strip().lower()
    return value if value in ERROR_TYPES else "grammar"


def map_severity(value: Optional[str]) -> str:
    value = (value or "").strip().lower()
    return value if value in SEVERITIES else "minor"


class AIMistakes:
    name = "ai-mistakes"

    def __init__(self, gateway: AIGateway, accept_degraded: bool = False) -> None:
        self.gateway = gateway
        self.accept_degraded = accept_degraded

    async def run(self, evaluation: Evaluation, submission: Submission) -> List[Mistake]:
        result = await self.gateway.detect_errors(
            submission.primary_text(), submission.content_type, evaluation.student_level
        )
        reject_degraded(result, stage="mistakes", accept=self.accept_degraded)
        return [
            Mistake(
                evaluation_id=evaluation.evaluation_id,
                error_type=map_error_type(err.error_type),
                severity=map_severity(err.severity),
                original_text=err.original_text,
                corrected_text=err.corrected_text,
                description=err.description,
                suggestion=err.suggestion,
                position=err.position,
                position_start=err.position,
                # unverified model output
                is_possible_error=True,
            )
            for err in result.errors
        ]


def speaking_notes(evaluation: Evaluation, submission: Submission) -> List[Mistake]:
    """Score-derived notes for speaking submissions without a usable transcript."""
    notes = []
    pronunciation = evaluation.pronunciation_score
    if pronunciation is not None and pronunciation < PRONUNCIATION_NOTE_THRESHOLD:
        notes.append(Mistake(
            evaluation_id=evaluation.evaluation_id,
            error_type="pronunciation",
            severity="major",
            description="Pronunciation clarity needs improvement",
            suggestion="Focus on clear articulation of consonants and vowels",
            is_possible_error=True,
        ))
    duration = submission.content.duration
    if duration is not None and duration < SHORT_RESPONSE_SECONDS:
        notes.append(Mistake(
            evaluation_id=evaluation.evaluation_id,
            error_type="pronunciation",
            severity="minor",
            description="Response too short for comprehensive evaluation",
            suggestion="Aim for at least 1-2 minutes of speaking time",
            is_possible_error=False,
        ))
    return notes


class PhonemeMistakes:
    name = "phoneme-rules"

    async def run(self, evaluation: Evaluation, submission: Submission) -> List[Mistake]:
        transcript = (submission.content.transcript or "").strip()
        if not transcript:
            return speaking_notes(evaluation, submission)

        pronunciation = evaluation.pronunciation_score
        if pronunciation is None or pronunciation >= rules.PHONEME_PRONUNCIATION_CEILING:
            return []

        return [
            Mistake(
                evaluation_id=evaluation.evaluation_id,
                error_type="pronunciation",
                severity=rule.severity,
                description=f"Possible issue with {rule.label}",
                suggestion=rule.suggestion,
                is_possible_error=True,
            )
            for rule, count in rules.phoneme_hits(transcript)
            if count > rules.PHONEME_MIN_OCCURRENCES
        ]


class RuleMistakes:
    name = "grammar-rules"

    async def run(self, evaluation: Evaluation, submission: Submission) -> List[Mistake]:
        text = submission.content.text or ""
        mistakes = []

        for rule, match in rules.iter_grammar_matches(text):
            mistakes.append(Mistake(
                evaluation_id=evaluation.evaluation_id,
                error_type=rule.error_type,
                severity=rule.severity,
                original_text=match.group(0),
                corrected_text=rule.correct(match),
                description=f"Grammar error: {rule.name}" if rule.error_type == "grammar" else f"Punctuation: {rule.name}",
                suggestion=rule.suggestion,
                position=match.start(),
                position_start=match.start(),
                position_end=match.end(),
                is_possible_error=False,
            ))

        for match, correct in rules.iter_misspellings(text):
            mistakes.append(Mistake(
                evaluation_id=evaluation.evaluation_id,
                error_type="spelling",
                severity="major",
                original_text=match.group(0),
                corrected_text=correct,
                description="Spelling error",
                suggestion=f'Correct spelling: "{correct}"',
                position=match.start(),
                position_start=match.start(),
                position_end=match.end(),
                is_possible_error=False,
            ))

        mistakes.sort(key=lambda m: m.position_start or 0)
        return mistakes


def quiz_mistakes(evaluation: Evaluation, submission: Submission) -> List[Mistake]:
    answers = [a.answer for a in submission.content.answers]
    mistakes = []
    for index, question in enumerate(submission.questions):
        answer = answers[index] if index < len(answers) else ""
        if answer.strip().lower() == question.correct_answer.strip().lower():
            continue
        mistakes.append(Mistake(
            evaluation_id=evaluation.evaluation_id,
            error_type="logic",
            severity="major",
            original_text=answer,
            corrected_text=question.correct_answer,
            description=f'Incorrect answer to question {index + 1}: "{question.question_text}"',
            suggestion=f"The correct answer is: {question.correct_answer}",
            position=index,
            is_possible_error=False,
        ))
    return mistakes


def _percentage(frequency: str) -> int:
    found = _PERCENT_RE.search(frequency or "")
    return int(clamp(found.group(0), 0, 100, 0)) if found else 0


class AIChallenges:
    name = "ai-challenges"

    def __init__(self, gateway: AIGateway, accept_degraded: bool = False) -> None:
        self.gateway = gateway
        self.accept_degraded = accept_degraded

    async def run(self, student_id: str, submissions: Sequence[Submission]) -> List[Challenge]:
        samples = [s for s in submissions if s.primary_text()]
        result = await self.gateway.detect_recurring_challenges(samples)
        reject_degraded(result, stage="challenges", accept=self.accept_degraded)
        return [
            Challenge(
                challenge_type=record.challenge_type,
                pattern=record.pattern,
                frequency=record.frequency,
                percentage=_percentage(record.frequency),
                severity=record.severity,
                recommendation=record.recommendation,
                ai_generated=True,
            )
            for record in result.challenges
        ]


class FrequencyChallenges:
    """Share of recent evaluations containing each mistake type."""

    name = "mistake-frequency"

    def __init__(self, store: EvaluationStore) -> None:
        self.store = store

    async def run(self, student_id: str, submissions: Sequence[Submission]) -> List[Challenge]:
        evaluations = await self.store.find_evaluations([s.submission_id for s in submissions])
        if not evaluations:
            return []

        mistakes = await self.store.list_mistakes([e.evaluation_id for e in evaluations])
        types_per_evaluation = {}
        for mistake in mistakes:
            types_per_evaluation.setdefault(mistake.evaluation_id, set()).add(mistake.error_type)
        counts = Counter(t for types in types_per_evaluation.values() for t in types)

        total = len(evaluations)
        challenges = []
        for error_type, count in counts.items():
            share = count / total
            if share < CHALLENGE_THRESHOLD:
                continue
            challenges.append(Challenge(
                challenge_type=error_type,
                pattern=f"Recurring {error_type} mistakes",
                frequency=f"{count} of {total} submissions",
                percentage=round_half_up(share * 100),
                severity="high" if share >= HIGH_SEVERITY_THRESHOLD else "medium",
                recommendation=CHALLENGE_RECOMMENDATIONS.get(error_type, DEFAULT_RECOMMENDATION),
                ai_generated=False,
            ))
        challenges.sort(key=lambda c: c.percentage, reverse=True)
        return challenges


class MistakeDetector:
    def __init__(
        self,
        gateway: AIGateway,
        store: EvaluationStore,
        accept_gateway_defaults: Optional[bool] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        accept = settings.ACCEPT_GATEWAY_DEFAULTS if accept_gateway_defaults is None else accept_gateway_defaults
        self.store = store
        self.history_limit = history_limit or settings.CHALLENGE_HISTORY_LIMIT
        ai_mistakes = AIMistakes(gateway, accept_degraded=accept)
        self._speaking = ResilientStrategy(ai_mistakes, PhonemeMistakes(), stage="mistakes")
        self._writing = ResilientStrategy(ai_mistakes, RuleMistakes(), stage="mistakes")
        self._frequency = FrequencyChallenges(store)
        self._challenges = ResilientStrategy(
            AIChallenges(gateway, accept_degraded=accept), self._frequency, stage="challenges"
        )

    async def detect_mistakes(self, evaluation: Evaluation, submission: Optional[Submission] = None) -> List[Mistake]:
        if submission is None:
            submission = await self.store.get_submission(evaluation.submission_id)

        content_type = submission.content_type
        if content_type == "speaking":
            if not (submission.content.transcript or "").strip():
                mistakes = speaking_notes(evaluation, submission)
            else:
                mistakes = await self._speaking.run(evaluation, submission)
        elif content_type == "writing":
            mistakes = await self._writing.run(evaluation, submission)
        elif content_type == "quiz":
            mistakes = quiz_mistakes(evaluation, submission)
        else:
            raise ConfigurationError(f"Unknown content type: {content_type}", {"submission_id": submission.submission_id})

        logger.info(f"Detected {len(mistakes)} mistakes for evaluation {evaluation.evaluation_id}")
        return mistakes

    async def detect_challenges(self, student_id: str, limit: Optional[int] = None) -> List[Challenge]:
        submissions = await self.store.find_recent_submissions(student_id, limit or self.history_limit)
        if not submissions:
            return []
        if not any(s.primary_text() for s in submissions):
            # nothing for the model to read; quiz history still has mistakes to count
            return await self._frequency.run(student_id, submissions)
        challenges = await self._challenges.run(student_id, submissions)
        logger.info(f"Detected {len(challenges)} recurring challenges for student {student_id}")
        return challenges
