"""
Unit tests for the feedback synthesizer
"""
import pytest

from lingua_eval.core.exceptions import ConfigurationError
from lingua_eval.models.evaluation import Feedback, Mistake
from lingua_eval.models.submission import Submission, SubmissionContent
from lingua_eval.services.evaluation.feedback import (
    CLOSING_LINE,
    FeedbackSynthesizer,
    score_opener,
    summary_sentence,
    tone_for,
)


@pytest.mark.unit
class TestBands:
    @pytest.mark.parametrize("score,opener", [
        (95, "Outstanding work!"),
        (85, "Excellent effort!"),
        (72, "Good work overall."),
        (61, "Fair performance with room for growth."),
        (40, "Thank you for your submission."),
    ])
    def test_opener(self, score, opener):
        assert score_opener(score) == opener

    def test_tone(self):
        assert tone_for(80) == "encouraging"
        assert tone_for(79) == "constructive"


@pytest.mark.unit
class TestTemplateFeedback:
    @pytest.mark.asyncio
    async def test_writing(self, offline_gateway, writing_submission, evaluation_for):
        submission = writing_submission()
        evaluation = evaluation_for(
            submission, overall_score=85, grammar_score=90, vocabulary_score=60, structure_score=82,
        )
        mistakes = [Mistake(error_type="grammar"), Mistake(error_type="spelling")]
        feedback = await FeedbackSynthesizer(offline_gateway).synthesize(evaluation, mistakes, submission)

        assert feedback.feedback_text.startswith("Excellent effort! Your overall score is 85/100.")
        assert feedback.feedback_text.endswith(CLOSING_LINE)
        assert "Grammar errors: 1" in feedback.feedback_text
        assert "Excellent grammar and sentence structure" in feedback.strengths
        assert "Vocabulary range could be expanded" in feedback.improvements
        assert "Response is too brief" in feedback.improvements
        assert feedback.tone == "encouraging"
        assert feedback.ai_generated is False
        assert feedback.is_summarized is False
        assert feedback.evaluation_id == evaluation.evaluation_id

    @pytest.mark.asyncio
    async def test_speaking(self, offline_gateway, speaking_submission, evaluation_for):
        submission = speaking_submission(duration=150)
        evaluation = evaluation_for(
            submission, overall_score=65, pronunciation_score=60, vocabulary_score=85, grammar_score=70,
        )
        mistakes = [Mistake(error_type="pronunciation", description="Response too short")]
        feedback = await FeedbackSynthesizer(offline_gateway).synthesize(evaluation, mistakes, submission)

        assert "Rich and varied vocabulary usage" in feedback.strengths
        assert "Good response length and detail" in feedback.strengths
        assert "Pronunciation clarity needs attention" in feedback.improvements
        assert "Response too short" in feedback.improvements
        assert feedback.tone == "constructive"

    @pytest.mark.asyncio
    async def test_quiz_is_summarized(self, offline_gateway, quiz_submission, evaluation_for):
        submission = quiz_submission()
        evaluation = evaluation_for(
            submission, overall_score=67,
            score_breakdown={"correct_answers": 2, "total_questions": 3},
        )
        feedback = await FeedbackSynthesizer(offline_gateway).synthesize(evaluation, [], submission)

        assert "Results: 2 correct out of 3 questions." in feedback.feedback_text
        assert feedback.improvements == ["1 incorrect answer"]
        assert feedback.recommendations == ["Focus on areas where mistakes occurred", "Clarify misunderstood concepts"]
        assert feedback.is_summarized is True

    @pytest.mark.asyncio
    async def test_unknown_content_type(self, offline_gateway, evaluation_for):
        submission = Submission(
            submission_id="x", student_id="u", content_type="video", content=SubmissionContent(text="hi"),
        )
        with pytest.raises(ConfigurationError):
            await FeedbackSynthesizer(offline_gateway).synthesize(evaluation_for(submission), [], submission)


@pytest.mark.unit
class TestModelFeedback:
    @pytest.mark.asyncio
    async def test_model_feedback(self, make_gateway, writing_submission, evaluation_for):
        gateway = make_gateway({"synthesize_feedback": {
            "feedbackText": "Nice essay.", "strengths": ["clear ideas"], "tone": "neutral",
            "nextSteps": "Practise articles.",
        }})
        submission = writing_submission()
        mistakes = [Mistake(error_type="grammar", description="Grammar error: article usage")]
        feedback = await FeedbackSynthesizer(gateway).synthesize(evaluation_for(submission), mistakes, submission, "A2")

        assert feedback.feedback_text == "Nice essay."
        assert feedback.tone == "neutral"
        assert feedback.ai_generated is True
        assert feedback.is_summarized is False
        prompt = gateway.llm.prompt_for("synthesize_feedback")
        assert "- grammar: Grammar error: article usage" in prompt
        assert "A2 level student" in prompt

    @pytest.mark.asyncio
    async def test_model_quiz_feedback_is_summarized(self, make_gateway, quiz_submission, evaluation_for):
        gateway = make_gateway({"synthesize_feedback": {"feedbackText": "Well done."}})
        submission = quiz_submission()
        feedback = await FeedbackSynthesizer(gateway).synthesize(evaluation_for(submission), [], submission)
        assert feedback.is_summarized is True
        assert feedback.tone == "encouraging"

    @pytest.mark.asyncio
    async def test_degraded_reply_uses_template(self, make_gateway, writing_submission, evaluation_for):
        gateway = make_gateway({"synthesize_feedback": "{}"})
        submission = writing_submission()
        feedback = await FeedbackSynthesizer(gateway, accept_gateway_defaults=False).synthesize(
            evaluation_for(submission), [], submission
        )
        assert feedback.ai_generated is False


@pytest.mark.unit
class TestSummarize:
    def _feedback(self, **kwargs) -> Feedback:
        fields = dict(
            evaluation_id="eval-1",
            feedback_text="A long narrative.",
            strengths=["clear ideas", "good vocabulary", "neat"],
            improvements=["articles"],
        )
        fields.update(kwargs)
        return Feedback(**fields)

    def test_summary_sentence(self):
        assert summary_sentence(self._feedback()) == "Strengths: clear ideas, good vocabulary. Focus on: articles."

    def test_summary_sentence_without_lists(self):
        assert summary_sentence(self._feedback(strengths=[], improvements=[])) == "A long narrative."

    @pytest.mark.asyncio
    async def test_template_summary(self, offline_gateway):
        original = self._feedback()
        summarized = await FeedbackSynthesizer(offline_gateway).summarize(original)

        assert summarized.is_summarized is True
        assert summarized.feedback_text == "Strengths: clear ideas, good vocabulary. Focus on: articles."
        assert summarized.feedback_id == original.feedback_id
        assert original.is_summarized is False

    @pytest.mark.asyncio
    async def test_model_summary(self, make_gateway):
        gateway = make_gateway({"summarize": "Clear ideas; watch your articles."})
        summarized = await FeedbackSynthesizer(gateway).summarize(self._feedback())
        assert summarized.feedback_text == "Clear ideas; watch your articles."

    @pytest.mark.asyncio
    async def test_already_summarized(self, make_gateway):
        gateway = make_gateway({"summarize": "unused"})
        feedback = self._feedback(is_summarized=True)
        assert await FeedbackSynthesizer(gateway).summarize(feedback) is feedback
        assert gateway.llm.calls == []
