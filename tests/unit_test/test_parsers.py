"""
Unit tests for the gateway response parsers
"""
import json

import pytest

from lingua_eval.core.exceptions import ParseError
from lingua_eval.services.ai_gateway import parsers


@pytest.mark.unit
class TestExtractJson:
    def test_strip_fences(self):
        assert parsers.strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_object_inside_chatter(self):
        assert parsers.extract_json('Sure! Here you go: {"a": 1} Hope it helps.') == {"a": 1}

    def test_no_object(self):
        with pytest.raises(ParseError):
            parsers.extract_json("I cannot help with that.")

    def test_broken_json(self):
        with pytest.raises(ParseError):
            parsers.extract_json('{"a": 1,,}')


@pytest.mark.unit
class TestParseScore:
    def test_snake_case_aliases_and_defaults(self):
        result = parsers.parse_score('{"overall_score": 88, "confidence": 3}')
        assert result.overall_score == 88
        assert result.grammar_score == 70
        assert result.confidence == 1.0
        assert result.reasoning == "Auto-generated evaluation"
        assert result.pronunciation_score is None
        assert result.degraded is False

    def test_out_of_range_values_are_clamped(self):
        result = parsers.parse_score(json.dumps({
            "overallScore": 150, "grammarScore": -4, "vocabularyScore": "abc",
            "structureScore": 72.6, "clarityScore": 80, "confidence": 0.85,
        }))
        assert result.overall_score == 100
        assert result.grammar_score == 0
        assert result.vocabulary_score == 70
        assert result.structure_score == 73

    @pytest.mark.parametrize("payload", ["{}", '{"error": "content filtered"}'])
    def test_reply_without_score_fields(self, payload):
        with pytest.raises(ParseError):
            parsers.parse_score(payload)

    def test_default_is_degraded(self):
        result = parsers.default_score()
        assert result.degraded is True
        assert result.overall_score == 70
        assert result.confidence == 0.7


@pytest.mark.unit
class TestParseErrors:
    def test_fields(self):
        result = parsers.parse_errors(json.dumps({"errors": [{
            "type": "Spelling", "severity": "MAJOR", "originalText": "recieve",
            "correctedText": "receive", "description": "i before e", "position": -5,
        }]}))
        err = result.errors[0]
        assert err.error_type == "spelling"
        assert err.severity == "major"
        assert err.corrected_text == "receive"
        assert err.position == 0

    def test_missing_list_is_empty(self):
        assert parsers.parse_errors("{}").errors == []

    def test_non_list_is_a_parse_error(self):
        with pytest.raises(ParseError):
            parsers.parse_errors('{"errors": "none"}')


@pytest.mark.unit
class TestParseFeedback:
    def test_requires_text(self):
        with pytest.raises(ParseError):
            parsers.parse_feedback('{"strengths": ["a"]}')

    def test_unknown_tone(self):
        result = parsers.parse_feedback('{"feedbackText": "Well done", "tone": "angry", "strengths": ["a", null, ""]}')
        assert result.tone == "encouraging"
        assert result.strengths == ["a"]

    def test_default(self):
        result = parsers.default_feedback()
        assert result.feedback_text == parsers.CANNED_FEEDBACK_TEXT
        assert result.degraded is True


@pytest.mark.unit
class TestOtherParsers:
    @pytest.mark.parametrize(
        "raw,expected", [(0.6, 0.5), (0.7, 0.75), (0.125, 0.25), (0.625, 0.75), (1.4, 1.0), (-1, 0.0)]
    )
    def test_short_answer_snaps_to_quarters(self, raw, expected):
        assert parsers.parse_short_answer(json.dumps({"score": raw})).score == expected

    def test_short_answer_without_score(self):
        with pytest.raises(ParseError):
            parsers.parse_short_answer('{"reasoning": "?"}')

    def test_challenges_severity(self):
        result = parsers.parse_challenges(
            '{"challenges": [{"type": "Grammar", "frequency": "3/5", "severity": "extreme"}]}'
        )
        record = result.challenges[0]
        assert record.challenge_type == "grammar"
        assert record.severity == "medium"

    def test_questions_skip_incomplete(self):
        result = parsers.parse_questions(json.dumps({"questions": [
            {"questionText": "2 + 2?", "correctAnswer": "4", "options": ["3", "4"]},
            {"questionText": "No answer here"},
        ]}))
        assert len(result.questions) == 1
        assert result.questions[0].question_type == "multiple-choice"

    def test_activity_prompt_default(self):
        result = parsers.default_activity_prompt("speaking", "travel")
        assert result.prompt == "Talk about travel."
        assert result.time_limit == "2 minutes"
        assert result.degraded is True
