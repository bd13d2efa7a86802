import logging
from typing import Dict, List, Optional, Sequence

from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import ConfigurationError
from lingua_eval.models.evaluation import Evaluation, Feedback, Mistake
from lingua_eval.models.submission import CONTENT_TYPES, Submission, normalize_level
from lingua_eval.services.ai_gateway.gateway import AIGateway
from lingua_eval.services.evaluation.heuristics import count_words
from lingua_eval.services.evaluation.resilience import ResilientStrategy, reject_degraded

logger = logging.getLogger(__name__)

CLOSING_LINE = "Keep practicing and you will continue to improve!"
GRAMMAR_ERROR_LIMIT = 5
SPELLING_ERROR_LIMIT = 3


def score_opener(score: int) -> str:
    if score >= 90:
        return "Outstanding work!"
    if score >= 80:
        return "Excellent effort!"
    if score >= 70:
        return "Good work overall."
    if score >= 60:
        return "Fair performance with room for growth."
    return "Thank you for your submission."


def tone_for(score: int) -> str:
    return "encouraging" if score >= 80 else "constructive"


def _bullets(title: str, items: Sequence[str]) -> str:
    return f"{title}:\n" + "\n".join(f"• {item}" for item in items)


def _component(value: Optional[int], default: int = 70) -> int:
    return default if value is None else value


class AIFeedback:
    name = "ai-feedback"

    def __init__(self, gateway: AIGateway, accept_degraded: bool = False) -> None:
        self.gateway = gateway
        self.accept_degraded = accept_degraded

    async def run(self, evaluation: Evaluation, mistakes: Sequence[Mistake], submission: Submission, level: str) -> Feedback:
        result = await self.gateway.synthesize_feedback(evaluation, mistakes, submission.content_type, level)
        reject_degraded(result, stage="feedback", accept=self.accept_degraded)
        return Feedback(
            evaluation_id=evaluation.evaluation_id,
            feedback_text=result.feedback_text,
            strengths=result.strengths,
            improvements=result.improvements,
            recommendations=result.recommendations,
            next_steps=result.next_steps,
            tone=result.tone,
            is_summarized=submission.content_type == "quiz",
            ai_generated=True,
        )


class TemplateFeedback:
    """Deterministic narrative built from score bands and mistake counts."""

    name = "template-feedback"

    async def run(self, evaluation: Evaluation, mistakes: Sequence[Mistake], submission: Submission, level: str) -> Feedback:
        if submission.content_type == "quiz":
            return self._quiz(evaluation)
        if submission.content_type == "speaking":
            return self._speaking(evaluation, mistakes, submission)
        return self._writing(evaluation, mistakes, submission)

    @staticmethod
    def _narrative(
        score: int,
        strengths: List[str],
        improvements: List[str],
        breakdown: Dict[str, int],
        error_counts: Optional[Dict[str, int]] = None,
    ) -> str:
        parts = [f"{score_opener(score)} Your overall score is {score}/100."]
        if strengths:
            parts.append(_bullets("Strengths", strengths))
        if improvements:
            parts.append(_bullets("Areas for Improvement", improvements))
        parts.append(_bullets("Score Breakdown", [f"{name}: {value}/100" for name, value in breakdown.items()]))
        if error_counts is not None:
            parts.append(_bullets("Error Analysis", [f"{name} errors: {count}" for name, count in error_counts.items()]))
        parts.append(CLOSING_LINE)
        return "\n\n".join(parts)

    def _speaking(self, evaluation: Evaluation, mistakes: Sequence[Mistake], submission: Submission) -> Feedback:
        score = evaluation.overall_score
        pronunciation = _component(evaluation.pronunciation_score)
        vocabulary = _component(evaluation.vocabulary_score)
        grammar = _component(evaluation.grammar_score)

        strengths: List[str] = []
        improvements: List[str] = []
        recommendations: List[str] = []

        if pronunciation >= 80:
            strengths.append("Clear and accurate pronunciation")
        if vocabulary >= 80:
            strengths.append("Rich and varied vocabulary usage")
        if grammar >= 80:
            strengths.append("Strong grammatical accuracy")
        if (submission.content.duration or 0) >= 120:
            strengths.append("Good response length and detail")

        if pronunciation < 70:
            improvements.append("Pronunciation clarity needs attention")
            recommendations.append("Practice pronunciation with native speaker recordings")
        if vocabulary < 70:
            improvements.append("Vocabulary range could be expanded")
            recommendations.append("Learn and use more advanced vocabulary words")
        if grammar < 70:
            improvements.append("Grammar accuracy requires improvement")
            recommendations.append("Review fundamental grammar rules and practice")

        pronunciation_issues = list(dict.fromkeys(
            m.description for m in mistakes if m.error_type == "pronunciation" and m.description
        ))
        improvements.extend(pronunciation_issues[:2])

        text = self._narrative(
            score,
            strengths,
            improvements,
            {"Pronunciation": pronunciation, "Vocabulary": vocabulary, "Grammar": grammar},
        )
        return Feedback(
            evaluation_id=evaluation.evaluation_id,
            feedback_text=text,
            strengths=strengths,
            improvements=improvements,
            recommendations=recommendations,
            next_steps="Record yourself regularly and compare with model answers.",
            tone=tone_for(score),
            is_summarized=False,
            ai_generated=False,
        )

    def _writing(self, evaluation: Evaluation, mistakes: Sequence[Mistake], submission: Submission) -> Feedback:
        score = evaluation.overall_score
        grammar = _component(evaluation.grammar_score)
        vocabulary = _component(evaluation.vocabulary_score)
        structure = _component(evaluation.structure_score, evaluation.score_breakdown.get("structure", 70))
        word_count = submission.content.word_count
        if word_count is None:
            word_count = count_words(submission.content.text or "")

        strengths: List[str] = []
        improvements: List[str] = []
        recommendations: List[str] = []

        if grammar >= 80:
            strengths.append("Excellent grammar and sentence structure")
        if vocabulary >= 80:
            strengths.append("Sophisticated vocabulary choices")
        if structure >= 80:
            strengths.append("Well-organized and coherent writing")
        if word_count >= 200:
            strengths.append("Comprehensive response with good detail")

        if grammar < 70:
            improvements.append("Grammar accuracy requires improvement")
        if vocabulary < 70:
            improvements.append("Vocabulary range could be expanded")
        if structure < 70:
            improvements.append("Organization and paragraphing need work")

        grammar_errors = sum(1 for m in mistakes if m.error_type == "grammar")
        spelling_errors = sum(1 for m in mistakes if m.error_type == "spelling")
        vocabulary_issues = sum(1 for m in mistakes if m.error_type == "vocabulary")

        if grammar_errors > GRAMMAR_ERROR_LIMIT:
            improvements.append(f"Grammar: {grammar_errors} errors detected")
            recommendations.append("Review grammar fundamentals, especially verb tenses and agreement")
        if spelling_errors > SPELLING_ERROR_LIMIT:
            improvements.append(f"Spelling: {spelling_errors} errors found")
            recommendations.append("Use spell-check and practice common spelling patterns")
        if vocabulary_issues:
            improvements.append("Vocabulary variety could be enhanced")
            recommendations.append("Use synonyms to avoid repetition")
        if word_count < 100:
            improvements.append("Response is too brief")
            recommendations.append("Develop ideas more fully with examples and explanations")

        text = self._narrative(
            score,
            strengths,
            improvements,
            {"Grammar": grammar, "Vocabulary": vocabulary, "Structure": structure},
            {"Grammar": grammar_errors, "Spelling": spelling_errors},
        )
        return Feedback(
            evaluation_id=evaluation.evaluation_id,
            feedback_text=text,
            strengths=strengths,
            improvements=improvements,
            recommendations=recommendations,
            next_steps="Revise this piece using the corrections above, then write a new draft.",
            tone=tone_for(score),
            is_summarized=False,
            ai_generated=False,
        )

    def _quiz(self, evaluation: Evaluation) -> Feedback:
        score = evaluation.overall_score
        breakdown = evaluation.score_breakdown
        correct = int(breakdown.get("correct_answers", 0))
        total = int(breakdown.get("total_questions", 0))
        incorrect = max(0, total - correct)

        strengths: List[str] = []
        improvements: List[str] = []
        recommendations: List[str] = []

        if score >= 90:
            strengths.extend(["Excellent overall performance", "Strong understanding of concepts"])
        elif score >= 75:
            strengths.append("Good grasp of most concepts")
        elif score >= 60:
            strengths.append("Fair understanding with room for improvement")
        if correct > 0:
            strengths.append(f"Correctly answered {correct} out of {total} questions")

        if incorrect > 0:
            improvements.append(f"{incorrect} incorrect {'answer' if incorrect == 1 else 'answers'}")
            if incorrect >= total * 0.5:
                recommendations.extend(["Review fundamental concepts thoroughly", "Practice with similar questions"])
            elif incorrect >= total * 0.25:
                recommendations.extend(["Focus on areas where mistakes occurred", "Clarify misunderstood concepts"])
            else:
                recommendations.append("Review incorrect answers to avoid similar mistakes")

        lines = [
            f"{score_opener(score)} You scored {score}/100.",
            f"Results: {correct} correct out of {total} questions.",
        ]
        if incorrect > 0:
            lines.append(
                f"Incorrect answers: {incorrect}. Review the correct answers provided to learn from your mistakes."
            )
        if score >= 80:
            lines.append("Excellent understanding of the material. Keep up the great work!")
        elif score >= 60:
            lines.append("You have a good foundation. Review the topics where you made mistakes.")
        else:
            lines.append("Consider reviewing the material more thoroughly and trying again.")

        return Feedback(
            evaluation_id=evaluation.evaluation_id,
            feedback_text="\n".join(lines),
            strengths=strengths,
            improvements=improvements,
            recommendations=recommendations,
            next_steps="Retake the quiz after reviewing the questions you missed.",
            tone=tone_for(score),
            is_summarized=True,
            ai_generated=False,
        )


def summary_sentence(feedback: Feedback) -> str:
    """``Strengths: a, b. Focus on: c, d.`` from the first two of each list."""
    parts = []
    if feedback.strengths:
        parts.append("Strengths: " + ", ".join(feedback.strengths[:2]) + ".")
    if feedback.improvements:
        parts.append("Focus on: " + ", ".join(feedback.improvements[:2]) + ".")
    return " ".join(parts) or feedback.feedback_text


class AISummary:
    name = "ai-summary"

    def __init__(self, gateway: AIGateway) -> None:
        self.gateway = gateway

    async def run(self, feedback: Feedback) -> str:
        return await self.gateway.summarize_text(feedback.feedback_text)


class TemplateSummary:
    name = "template-summary"

    async def run(self, feedback: Feedback) -> str:
        return summary_sentence(feedback)


class FeedbackSynthesizer:
    def __init__(self, gateway: AIGateway, accept_gateway_defaults: Optional[bool] = None) -> None:
        accept = settings.ACCEPT_GATEWAY_DEFAULTS if accept_gateway_defaults is None else accept_gateway_defaults
        self._feedback: ResilientStrategy[Feedback] = ResilientStrategy(
            AIFeedback(gateway, accept_degraded=accept), TemplateFeedback(), stage="feedback"
        )
        self._summary: ResilientStrategy[str] = ResilientStrategy(
            AISummary(gateway), TemplateSummary(), stage="summarize"
        )

    async def synthesize(
        self,
        evaluation: Evaluation,
        mistakes: Sequence[Mistake],
        submission: Submission,
        level: Optional[str] = None,
    ) -> Feedback:
        if submission.content_type not in CONTENT_TYPES:
            raise ConfigurationError(
                f"Unknown content type: {submission.content_type}",
                {"submission_id": submission.submission_id},
            )
        level = normalize_level(level or evaluation.student_level)
        feedback = await self._feedback.run(evaluation, mistakes, submission, level)
        logger.info(
            f"Feedback ready for evaluation {evaluation.evaluation_id} "
            f"(ai_generated={feedback.ai_generated}, tone={feedback.tone})"
        )
        return feedback

    async def summarize(self, feedback: Feedback) -> Feedback:
        """Condense ``feedback`` once; already-summarized feedback comes back unchanged."""
        if feedback.is_summarized:
            return feedback
        summary = await self._summary.run(feedback)
        return feedback.model_copy(update={"feedback_text": summary, "is_summarized": True})
