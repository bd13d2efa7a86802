"""
Unit tests for mistake detection and recurring challenges
"""
from datetime import datetime, timedelta, timezone

import pytest

from lingua_eval.models.evaluation import Evaluation, Mistake
from lingua_eval.models.submission import Submission, SubmissionContent
from lingua_eval.services.evaluation.mistakes import MistakeDetector, map_error_type, map_severity


@pytest.mark.unit
class TestRuleMistakes:
    @pytest.mark.asyncio
    async def test_article_error(self, offline_gateway, store, writing_submission, evaluation_for):
        submission = writing_submission("I ate a apple yesterday.")
        evaluation = evaluation_for(submission)
        mistakes = await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation, submission)

        assert len(mistakes) == 1
        mistake = mistakes[0]
        assert mistake.error_type == "grammar"
        assert mistake.original_text == "a apple"
        assert mistake.corrected_text == "an apple"
        assert (mistake.position_start, mistake.position_end) == (6, 13)
        assert mistake.evaluation_id == evaluation.evaluation_id
        assert mistake.is_possible_error is False

    @pytest.mark.asyncio
    async def test_spelling_and_spacing_in_text_order(self, offline_gateway, store, writing_submission, evaluation_for):
        submission = writing_submission("I recieve  thier letters.")
        mistakes = await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation_for(submission), submission)

        assert [(m.error_type, m.original_text) for m in mistakes] == [
            ("spelling", "recieve"),
            ("punctuation", "  "),
            ("spelling", "thier"),
        ]
        assert mistakes[0].corrected_text == "receive"

    @pytest.mark.asyncio
    async def test_clean_text(self, offline_gateway, store, writing_submission, evaluation_for):
        submission = writing_submission("She is happy today.")
        assert await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation_for(submission), submission) == []

    @pytest.mark.asyncio
    async def test_loads_submission_from_store(self, offline_gateway, store, writing_submission, evaluation_for):
        submission = writing_submission()
        await store.add_submission(submission)
        mistakes = await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation_for(submission))
        assert [m.corrected_text for m in mistakes] == ["an apple"]


@pytest.mark.unit
class TestModelMistakes:
    @pytest.mark.asyncio
    async def test_mapping(self, make_gateway, store, writing_submission, evaluation_for):
        gateway = make_gateway({"detect_errors": {"errors": [{
            "type": "style", "severity": "huge", "originalText": "ate", "correctedText": "eat", "position": 2,
        }]}})
        submission = writing_submission()
        mistakes = await MistakeDetector(gateway, store).detect_mistakes(evaluation_for(submission), submission)

        assert len(mistakes) == 1
        assert mistakes[0].error_type == "grammar"
        assert mistakes[0].severity == "minor"
        assert mistakes[0].position == 2
        assert mistakes[0].is_possible_error is True

    @pytest.mark.asyncio
    async def test_degraded_reply_uses_rules(self, make_gateway, store, writing_submission, evaluation_for):
        gateway = make_gateway({"detect_errors": "sorry"})
        submission = writing_submission()
        detector = MistakeDetector(gateway, store, accept_gateway_defaults=False)
        mistakes = await detector.detect_mistakes(evaluation_for(submission), submission)
        assert [m.corrected_text for m in mistakes] == ["an apple"]

    @pytest.mark.asyncio
    async def test_degraded_reply_accepted(self, make_gateway, store, writing_submission, evaluation_for):
        gateway = make_gateway({"detect_errors": "sorry"})
        submission = writing_submission()
        detector = MistakeDetector(gateway, store, accept_gateway_defaults=True)
        assert await detector.detect_mistakes(evaluation_for(submission), submission) == []

    def test_enum_mapping(self):
        assert map_error_type("Vocabulary") == "vocabulary"
        assert map_error_type(None) == "grammar"
        assert map_severity("CRITICAL") == "critical"
        assert map_severity("") == "minor"


@pytest.mark.unit
class TestSpeakingMistakes:
    @pytest.mark.asyncio
    async def test_notes_without_transcript(self, make_gateway, store, speaking_submission, evaluation_for):
        gateway = make_gateway({})
        submission = speaking_submission(duration=30)
        evaluation = evaluation_for(submission, pronunciation_score=60)
        mistakes = await MistakeDetector(gateway, store).detect_mistakes(evaluation, submission)

        assert [(m.error_type, m.severity) for m in mistakes] == [("pronunciation", "major"), ("pronunciation", "minor")]
        # the model is never asked about a missing transcript
        assert gateway.llm.calls == []

    @pytest.mark.asyncio
    async def test_phoneme_rules(self, offline_gateway, store, speaking_submission, evaluation_for):
        submission = speaking_submission(transcript="the the the the the cat sat", duration=90)
        evaluation = evaluation_for(submission, pronunciation_score=70)
        mistakes = await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation, submission)

        assert len(mistakes) == 1
        assert mistakes[0].description == "Possible issue with TH sound pronunciation"
        assert mistakes[0].severity == "major"

    @pytest.mark.asyncio
    async def test_good_pronunciation_has_no_phoneme_notes(self, offline_gateway, store, speaking_submission, evaluation_for):
        submission = speaking_submission(transcript="the the the the the cat sat", duration=90)
        evaluation = evaluation_for(submission, pronunciation_score=80)
        assert await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation, submission) == []


@pytest.mark.unit
class TestQuizMistakes:
    @pytest.mark.asyncio
    async def test_wrong_and_unanswered(self, offline_gateway, store, quiz_submission, evaluation_for):
        submission = quiz_submission(answers=("Rome", "true"))
        mistakes = await MistakeDetector(offline_gateway, store).detect_mistakes(evaluation_for(submission), submission)

        assert [(m.error_type, m.severity, m.position) for m in mistakes] == [("logic", "major", 0), ("logic", "major", 2)]
        assert mistakes[0].original_text == "Rome"
        assert mistakes[0].corrected_text == "Paris"
        assert mistakes[1].original_text == ""


async def _history(store, mistake_types):
    """One writing submission per entry, with evaluations holding the given mistake types."""
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    for index, types in enumerate(mistake_types):
        submission = Submission(
            submission_id=f"hist-{index}",
            student_id="stu-9",
            content_type="writing",
            status="completed",
            content=SubmissionContent(text=f"Essay number {index}."),
            submitted_at=start + timedelta(days=index),
        )
        await store.add_submission(submission)
        evaluation = await store.save_evaluation(Evaluation(
            submission_id=submission.submission_id, student_id="stu-9", content_type="writing", overall_score=70,
        ))
        await store.replace_mistakes(evaluation.evaluation_id, [Mistake(error_type=t) for t in types])


@pytest.mark.unit
class TestChallenges:
    @pytest.mark.asyncio
    async def test_frequency_fallback(self, offline_gateway, store):
        await _history(store, [["grammar", "spelling", "grammar"], ["grammar"], []])
        challenges = await MistakeDetector(offline_gateway, store).detect_challenges("stu-9")

        assert [(c.challenge_type, c.percentage, c.severity) for c in challenges] == [
            ("grammar", 67, "high"),
            ("spelling", 33, "medium"),
        ]
        assert all(not c.ai_generated for c in challenges)
        assert challenges[0].frequency == "2 of 3 submissions"

    @pytest.mark.asyncio
    async def test_rare_types_are_ignored(self, offline_gateway, store):
        await _history(store, [["vocabulary"], [], [], []])
        assert await MistakeDetector(offline_gateway, store).detect_challenges("stu-9") == []

    @pytest.mark.asyncio
    async def test_no_history(self, offline_gateway, store):
        assert await MistakeDetector(offline_gateway, store).detect_challenges("nobody") == []

    @pytest.mark.asyncio
    async def test_model_challenges(self, make_gateway, store):
        await _history(store, [["grammar"], ["grammar"]])
        gateway = make_gateway({"detect_challenges": {"challenges": [{
            "type": "grammar", "pattern": "tense shifts", "frequency": "60% of submissions",
            "severity": "high", "recommendation": "Practise past tense",
        }]}})
        challenges = await MistakeDetector(gateway, store).detect_challenges("stu-9")

        assert len(challenges) == 1
        assert challenges[0].percentage == 60
        assert challenges[0].ai_generated is True
        prompt = gateway.llm.prompt_for("detect_challenges")
        assert "Essay number 0." in prompt and "Essay number 1." in prompt

    @pytest.mark.asyncio
    async def test_history_limit(self, make_gateway, store):
        await _history(store, [[], [], []])
        gateway = make_gateway({"detect_challenges": {"challenges": []}})
        await MistakeDetector(gateway, store, history_limit=2).detect_challenges("stu-9")

        prompt = gateway.llm.prompt_for("detect_challenges")
        # newest two only
        assert "Essay number 2." in prompt
        assert "Essay number 0." not in prompt
