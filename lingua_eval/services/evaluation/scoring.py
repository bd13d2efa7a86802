"""Scoring engine: one Evaluation per submission.

Speaking and writing go through the model first and fall back to the
deterministic heuristics; quizzes are graded per question, with the model
only consulted for short answers.
"""
import logging
import random
from typing import List, Optional, Tuple

from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import ConfigurationError
from lingua_eval.models.evaluation import FALLBACK_HEURISTIC, PRIMARY_MODEL, Evaluation, round_half_up
from lingua_eval.models.submission import CONTENT_TYPES, QuizQuestion, Submission, normalize_level
from lingua_eval.services.ai_gateway.gateway import AIGateway
from lingua_eval.services.evaluation import heuristics
from lingua_eval.services.evaluation.resilience import ResilientStrategy, reject_degraded
from lingua_eval.services.evaluation.similarity import exact_match, similarity_credit

logger = logging.getLogger(__name__)

HEURISTIC_CONFIDENCE = 0.6
QUIZ_CONFIDENCE = 0.95
RULE_BASED_MODEL = "rule-based"


def validate_submission(submission: Submission) -> None:
    """Reject submissions the engine cannot score at all."""
    content_type = submission.content_type
    if content_type not in CONTENT_TYPES:
        raise ConfigurationError(
            f"Unknown content type: {content_type}",
            {"submission_id": submission.submission_id},
        )
    content = submission.content
    if content_type == "writing" and not (content.text or "").strip():
        raise ConfigurationError("Writing submission has no text", {"submission_id": submission.submission_id})
    if content_type == "speaking" and not (content.transcript or "").strip() and content.duration is None:
        raise ConfigurationError(
            "Speaking submission has neither transcript nor duration",
            {"submission_id": submission.submission_id},
        )
    if content_type == "quiz" and (not submission.questions or not content.answers):
        raise ConfigurationError(
            "Quiz submission needs both questions and answers",
            {"submission_id": submission.submission_id},
        )


def _base_evaluation(submission: Submission, level: str, **fields) -> Evaluation:
    return Evaluation(
        submission_id=submission.submission_id,
        student_id=submission.student_id,
        content_type=submission.content_type,
        student_level=level,
        **fields,
    )


class AIScoring:
    name = "ai-scoring"

    def __init__(self, gateway: AIGateway, accept_degraded: bool = False) -> None:
        self.gateway = gateway
        self.accept_degraded = accept_degraded

    async def run(self, submission: Submission, level: str) -> Evaluation:
        content = submission.content
        if submission.content_type == "speaking":
            prompt_text = (content.transcript or "").strip() or (
                f"Audio submission (duration: {content.duration} seconds)"
            )
        else:
            prompt_text = content.text or ""

        result = await self.gateway.score(prompt_text, submission.content_type, submission.rubric, level)
        reject_degraded(result, stage="scoring", accept=self.accept_degraded)

        common = dict(
            overall_score=result.overall_score,
            grammar_score=result.grammar_score,
            vocabulary_score=result.vocabulary_score,
            clarity_score=result.clarity_score,
            ai_confidence=result.confidence,
            ai_provider=PRIMARY_MODEL,
            ai_model=self.gateway.model_name,
            reasoning=result.reasoning,
        )
        if submission.content_type == "speaking":
            pronunciation = result.pronunciation_score
            if pronunciation is None:
                pronunciation = result.clarity_score
            return _base_evaluation(
                submission,
                level,
                pronunciation_score=pronunciation,
                score_breakdown={
                    "fluency": result.structure_score,
                    "clarity": result.clarity_score,
                    "pace": round_half_up((result.structure_score + result.clarity_score) / 2),
                },
                **common,
            )

        return _base_evaluation(
            submission,
            level,
            structure_score=result.structure_score,
            score_breakdown={
                "structure": result.structure_score,
                "coherence": result.clarity_score,
                "mechanics": result.grammar_score,
                "creativity": round_half_up((result.vocabulary_score + result.structure_score) / 2),
            },
            **common,
        )


class HeuristicScoring:
    name = "heuristic-scoring"

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    async def run(self, submission: Submission, level: str) -> Evaluation:
        if submission.content_type == "speaking":
            return self._speaking(submission, level)
        return self._writing(submission, level)

    def _speaking(self, submission: Submission, level: str) -> Evaluation:
        content = submission.content
        transcript = (content.transcript or "").strip()

        if transcript:
            pronunciation = heuristics.pronunciation_from_duration(content.duration)
            vocabulary = heuristics.vocabulary_score(transcript)
            grammar = heuristics.grammar_score(transcript)
            reasoning = "Rule-based estimate from transcript and response duration"
        else:
            # duration is all there is; jitter stands in for listening variance
            pronunciation = heuristics.pronunciation_from_duration(content.duration, self.rng)
            vocabulary = heuristics.NEUTRAL_SCORE
            grammar = heuristics.NEUTRAL_SCORE
            reasoning = "Rule-based estimate from response duration only"

        return _base_evaluation(
            submission,
            level,
            overall_score=heuristics.speaking_overall(pronunciation, vocabulary, grammar),
            pronunciation_score=pronunciation,
            vocabulary_score=vocabulary,
            grammar_score=grammar,
            ai_confidence=HEURISTIC_CONFIDENCE,
            ai_provider=FALLBACK_HEURISTIC,
            ai_model=RULE_BASED_MODEL,
            reasoning=reasoning,
            score_breakdown={
                "clarity": pronunciation,
                "duration_seconds": content.duration,
                "word_count": heuristics.count_words(transcript),
            },
        )

    def _writing(self, submission: Submission, level: str) -> Evaluation:
        text = submission.content.text or ""
        word_count = heuristics.count_words(text)
        grammar = heuristics.grammar_score(text)
        vocabulary = heuristics.vocabulary_score(text)
        structure = heuristics.structure_score(text, word_count)

        return _base_evaluation(
            submission,
            level,
            overall_score=heuristics.writing_overall(grammar, vocabulary, structure),
            grammar_score=grammar,
            vocabulary_score=vocabulary,
            structure_score=structure,
            ai_confidence=HEURISTIC_CONFIDENCE,
            ai_provider=FALLBACK_HEURISTIC,
            ai_model=RULE_BASED_MODEL,
            reasoning="Rule-based estimate from grammar patterns, lexical variety and text structure",
            score_breakdown={
                "structure": structure,
                "mechanics": grammar,
                "word_count": word_count,
            },
        )


class AIShortAnswer:
    name = "ai-short-answer"

    def __init__(self, gateway: AIGateway, accept_degraded: bool = False) -> None:
        self.gateway = gateway
        self.accept_degraded = accept_degraded

    async def run(self, question: QuizQuestion, answer: str) -> Tuple[float, bool]:
        judgment = await self.gateway.judge_short_answer(question.question_text, question.correct_answer, answer)
        reject_degraded(judgment, stage="short-answer", accept=self.accept_degraded)
        return judgment.score, True


class SimilarityShortAnswer:
    name = "edit-distance"

    async def run(self, question: QuizQuestion, answer: str) -> Tuple[float, bool]:
        return similarity_credit(answer, question.correct_answer), False


class ScoringEngine:
    def __init__(
        self,
        gateway: AIGateway,
        rng: Optional[random.Random] = None,
        accept_gateway_defaults: Optional[bool] = None,
    ) -> None:
        accept = settings.ACCEPT_GATEWAY_DEFAULTS if accept_gateway_defaults is None else accept_gateway_defaults
        self.gateway = gateway
        self._free_text: ResilientStrategy[Evaluation] = ResilientStrategy(
            AIScoring(gateway, accept_degraded=accept),
            HeuristicScoring(rng),
            stage="scoring",
        )
        self._short_answer: ResilientStrategy[Tuple[float, bool]] = ResilientStrategy(
            AIShortAnswer(gateway, accept_degraded=accept),
            SimilarityShortAnswer(),
            stage="short-answer",
        )

    async def score(self, submission: Submission, level: Optional[str] = None) -> Evaluation:
        validate_submission(submission)
        level = normalize_level(level or submission.proficiency_level)

        if submission.content_type == "quiz":
            evaluation = await self.score_quiz(submission, level)
        else:
            evaluation = await self._free_text.run(submission, level)

        logger.info(
            f"Scored submission {submission.submission_id} ({submission.content_type}, {level}): "
            f"{evaluation.overall_score} via {evaluation.ai_provider}"
        )
        return evaluation

    async def grade_answer(self, question: QuizQuestion, answer: Optional[str]) -> Tuple[float, bool]:
        """Credit in [0, 1] for one answer and whether the model judged it."""
        if answer is None or not answer.strip():
            return 0.0, False
        if question.question_type == "short-answer":
            return await self._short_answer.run(question, answer)
        return exact_match(answer, question.correct_answer), False

    async def score_quiz(self, submission: Submission, level: str) -> Evaluation:
        answers: List[Optional[str]] = [a.answer for a in submission.content.answers]
        total_points = 0.0
        earned_points = 0.0
        correct = 0
        partial = 0
        short_answers = 0
        ai_judged = 0

        for index, question in enumerate(submission.questions):
            answer = answers[index] if index < len(answers) else None
            credit, judged = await self.grade_answer(question, answer)
            total_points += question.points
            earned_points += credit * question.points
            if credit >= 1.0:
                correct += 1
            elif credit > 0:
                partial += 1
            if question.question_type == "short-answer":
                short_answers += 1
                ai_judged += int(judged)

        logic_score = round_half_up(earned_points / total_points * 100) if total_points > 0 else 0
        total_questions = len(submission.questions)
        used_model = short_answers > 0 and ai_judged == short_answers

        return _base_evaluation(
            submission,
            level,
            overall_score=logic_score,
            logic_score=logic_score,
            ai_confidence=QUIZ_CONFIDENCE,
            ai_provider=PRIMARY_MODEL if used_model else FALLBACK_HEURISTIC,
            ai_model=self.gateway.model_name if used_model else RULE_BASED_MODEL,
            reasoning=f"{correct} of {total_questions} answers fully correct, {partial} with partial credit",
            score_breakdown={
                "correct_answers": correct,
                "partial_credit": partial,
                "total_questions": total_questions,
                "accuracy": round_half_up(correct / total_questions * 100) if total_questions else 0,
            },
        )
