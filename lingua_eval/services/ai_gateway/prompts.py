"""Level-aware prompt builders for every gateway operation.

Builders are pure functions: the per-band wording comes from the
``PromptLoader`` tables, never from inline level conditionals.
"""
from __future__ import annotations

from typing import Optional, Sequence

from lingua_eval.models.evaluation import Evaluation, Mistake
from lingua_eval.models.submission import Rubric, Submission, normalize_level
from lingua_eval.utils.prompt_loader import PromptLoader

JSON_ONLY = "Return ONLY valid JSON (no markdown, no code blocks):"


def _score_line(label: str, value: Optional[int]) -> str:
    return f"{label}: {value if value is not None else 'n/a'}/100"


def format_rubric(rubric: Optional[Rubric]) -> str:
    """Rubric criteria verbatim, one per line; empty string when absent."""
    if rubric is None or not rubric.criteria:
        return ""
    return "\n".join(f"- {c.name} (weight: {c.weight}): {c.description}" for c in rubric.criteria)


def build_score_prompt(
    loader: PromptLoader,
    content: str,
    content_type: str,
    rubric: Optional[Rubric],
    level: str,
) -> str:
    level = normalize_level(level)
    expectations = loader.table("level_expectations")
    band_lines = "\n".join(
        f"{band}: grammar - {info['grammar']}; vocabulary - {info['vocabulary']}; structure - {info['structure']}"
        for band, info in expectations.items()
    )
    info = expectations[level]
    rubric_text = format_rubric(rubric) or (
        f"Use standard language assessment criteria adjusted for {level} level: "
        "grammar, vocabulary, structure, clarity"
    )

    extra_fields = ""
    if content_type == "speaking":
        extra_fields = '  "pronunciationScore": <number 0-100, judged from fluency cues in the transcript>,\n'
    elif content_type == "quiz":
        extra_fields = '  "logicScore": <number 0-100>,\n'

    return f"""You are an expert English language evaluator for educational assessments.
You are evaluating a {level} CEFR level student's {content_type} submission.

=== CEFR EXPECTATIONS BY LEVEL ===
{band_lines}

=== STUDENT'S CEFR LEVEL: {level} ===
Expected Grammar: {info['grammar']}
Expected Vocabulary: {info['vocabulary']}
Expected Structure: {info['structure']}
Level Expectations: {info['expectations']}

IMPORTANT: Evaluate this submission RELATIVE TO the {level} level expectations.
- A submission that fully meets {level} expectations should score 80-90
- A submission that exceeds {level} expectations should score 90-100
- A submission that partially meets {level} expectations should score 60-80
- A submission below {level} expectations should score below 60

=== SUBMISSION ===
{content}

=== RUBRIC CRITERIA ===
{rubric_text}

=== TASK ===
Provide a detailed evaluation considering the student's {level} level.
Be encouraging but honest. Identify specific strengths and areas for improvement.

{JSON_ONLY}

{{
  "overallScore": <number 0-100>,
  "grammarScore": <number 0-100>,
  "vocabularyScore": <number 0-100>,
  "structureScore": <number 0-100>,
  "clarityScore": <number 0-100>,
{extra_fields}  "confidence": <number 0.0-1.0>,
  "reasoning": "<what the student did well for their level, specific mistakes, and what to focus on next>"
}}"""


def build_errors_prompt(loader: PromptLoader, content: str, content_type: str, level: str) -> str:
    level = normalize_level(level)
    focus = loader.for_level("error_focus", level)
    error_types = "grammar|spelling|vocabulary|punctuation|logic"
    if content_type == "speaking":
        error_types += "|pronunciation"

    return f"""You are an expert English language evaluator helping a {level} level student improve.
Analyze this {content_type} submission and identify errors APPROPRIATE to their level.

=== STUDENT LEVEL: {level} ===
{focus}

=== SUBMISSION ===
{content}

=== TASK ===
Identify errors that are important for a {level} level student to learn from.
- Prioritize errors that are essential at this level
- For each error, explain WHY it is wrong in simple terms the student can understand
- Provide helpful corrections and learning tips

{JSON_ONLY}

{{
  "errors": [
    {{
      "type": "<{error_types}>",
      "severity": "<critical|major|minor>",
      "originalText": "<the exact incorrect text>",
      "correctedText": "<the corrected version>",
      "description": "<clear explanation of the error, appropriate for {level} level>",
      "suggestion": "<actionable tip to avoid this mistake in the future>"
    }}
  ]
}}

If there are no errors, return: {{"errors": []}}"""


def build_challenges_prompt(samples: Sequence[Submission]) -> str:
    submission_texts = "\n\n".join(
        f"Submission {i + 1} ({sub.content_type}): {sub.primary_text() or 'No content'}"
        for i, sub in enumerate(samples)
    )
    return f"""You are an expert education analyst. Analyze these {len(samples)} submissions from the same student to identify recurring learning challenges.

=== STUDENT SUBMISSIONS ===
{submission_texts}

=== TASK ===
Identify patterns of recurring mistakes, learning difficulties and knowledge gaps.

{JSON_ONLY}

{{
  "challenges": [
    {{
      "type": "<grammar|vocabulary|spelling|punctuation|logic|comprehension>",
      "pattern": "<description of the recurring issue>",
      "frequency": "<how often it appears, e.g. '60%'>",
      "severity": "<high|medium|low>",
      "recommendation": "<specific actionable advice to improve>"
    }}
  ]
}}

If no clear patterns exist, return: {{"challenges": []}}"""


def build_feedback_prompt(
    loader: PromptLoader,
    evaluation: Evaluation,
    mistakes: Sequence[Mistake],
    content_type: str,
    level: str,
) -> str:
    level = normalize_level(level)
    guidance = loader.for_level("feedback_guidance", level)
    mistakes_summary = (
        "\n".join(f"- {m.error_type}: {m.description}" for m in mistakes)
        if mistakes
        else "No significant errors detected"
    )
    score_lines = [_score_line("Overall Score", evaluation.overall_score)]
    if content_type == "quiz":
        score_lines.append(_score_line("Logic", evaluation.logic_score))
    else:
        score_lines.append(_score_line("Grammar", evaluation.grammar_score))
        score_lines.append(_score_line("Vocabulary", evaluation.vocabulary_score))
        if content_type == "speaking":
            score_lines.append(_score_line("Pronunciation", evaluation.pronunciation_score))
        else:
            score_lines.append(_score_line("Structure", evaluation.structure_score))
    length_hint = "60-100 words, result-summary style" if content_type == "quiz" else "150-250 words"
    scores = "\n".join(score_lines)

    return f"""You are a supportive English language teacher providing personalized feedback to a {level} level student.

=== STUDENT LEVEL: {level} ===
Feedback Guidance: {guidance}

=== EVALUATION RESULTS ===
{scores}

=== ERRORS FOUND ===
{mistakes_summary}

=== TASK ===
Generate encouraging, constructive feedback for this {content_type} submission.
IMPORTANT:
- Write feedback that a {level} level student can understand
- Be specific about what they did well FOR THEIR LEVEL
- Point out the most important areas for improvement
- Give 3-5 actionable recommendations appropriate for {level} level
- If they made mistakes, explain them in a helpful, non-discouraging way

{JSON_ONLY}

{{
  "feedbackText": "<complete personalized feedback message, {length_hint}, written for a {level} student>",
  "strengths": ["<specific strength 1>", "<specific strength 2>"],
  "improvements": ["<clear area for improvement 1>", "<clear area for improvement 2>"],
  "recommendations": ["<actionable tip 1>", "<actionable tip 2>", "<actionable tip 3>"],
  "nextSteps": "<what the student should focus on next to progress from {level} level>",
  "tone": "<encouraging|constructive|neutral>"
}}"""


def build_short_answer_prompt(question_text: str, expected: str, answer: str) -> str:
    return f"""You are evaluating a student's short answer response.

Question: {question_text}
Expected Answer: {expected}
Student's Answer: {answer}

Evaluate if the student's answer is correct. Consider:
- Semantic equivalence (same meaning, different words)
- Partial correctness
- Minor spelling variations

{JSON_ONLY}
{{
  "score": <one of 0, 0.25, 0.5, 0.75, 1.0>,
  "reasoning": "<brief explanation>"
}}

Score guide: 1.0 = fully correct, 0.75 = mostly correct, 0.5 = partially correct, 0.25 = slightly relevant, 0 = incorrect"""


def build_summary_prompt(feedback_text: str) -> str:
    return f"""Summarize this feedback in 2-3 sentences, keeping the key strengths and areas for improvement:

{feedback_text}

Return ONLY the summary text, no JSON."""


def build_questions_prompt(
    loader: PromptLoader, activity_type: str, level: str, topic: str, question_count: int
) -> str:
    level = normalize_level(level)
    description = loader.for_level("question_levels", level)

    if activity_type == "quiz":
        return f"""You are an expert English language teacher creating quiz questions.

=== PARAMETERS ===
Student Level: {level} ({description})
Topic: {topic}
Number of Questions: {question_count}

=== TASK ===
Generate {question_count} multiple-choice questions appropriate for a {level} level student.
Each question must have exactly 4 options with only one correct answer.

Requirements:
- Vocabulary and grammar MUST match {level} CEFR level
- Questions should test understanding, not trick the student
- Options should be plausible but clearly distinguishable
- Include a mix of vocabulary, grammar and comprehension questions

{JSON_ONLY}

{{
  "questions": [
    {{
      "questionText": "<clear question>",
      "questionType": "multiple-choice",
      "options": ["<option A>", "<option B>", "<option C>", "<option D>"],
      "correctAnswer": "<exact text of correct option>",
      "points": 1,
      "explanation": "<why this answer is correct>"
    }}
  ]
}}"""

    expected_length = "1-2 minutes of speaking" if activity_type == "speaking" else "150-250 words"
    return f"""You are an expert English language teacher creating {activity_type} activity prompts.

=== PARAMETERS ===
Student Level: {level} ({description})
Topic: {topic}
Activity Type: {activity_type}

=== TASK ===
Generate a {activity_type} prompt with guiding questions appropriate for a {level} level student.

Requirements:
- Main prompt must be clear and achievable at {level} level
- Include 3-4 guiding questions to help structure the response
- Provide helpful vocabulary hints
- Specify expected length/duration

{JSON_ONLY}

{{
  "prompt": "<main task/topic for the student>",
  "instructions": "<clear instructions on what to do>",
  "guideQuestions": ["<helpful question 1>", "<helpful question 2>", "<helpful question 3>"],
  "vocabularyHints": ["<useful word/phrase 1>", "<useful word/phrase 2>", "<useful word/phrase 3>"],
  "expectedLength": "{expected_length}"
}}"""


def build_activity_prompt(loader: PromptLoader, activity_type: str, level: str, topic: str) -> str:
    level = normalize_level(level)
    guidelines = loader.for_level("activity_guidelines", level)
    time_limit = "2 minutes" if activity_type == "speaking" else "30 minutes"
    expected_length = "1-2 minutes of speaking" if activity_type == "speaking" else "150-250 words"

    return f"""You are an expert English teacher creating a {activity_type} prompt for a {level} English learner.

=== PARAMETERS ===
Activity Type: {activity_type}
Student Level: {level}
Topic: {topic}
Level Guidelines: {guidelines}

=== TASK ===
Create an engaging {activity_type} prompt that is appropriate for {level} level.

{JSON_ONLY}

{{
  "prompt": "<the main prompt/question for the student>",
  "instructions": "<clear instructions on what to do, 2-3 sentences>",
  "guideQuestions": ["<helpful question 1>", "<helpful question 2>", "<helpful question 3>"],
  "vocabularyHints": ["<useful word or phrase 1>", "<useful word or phrase 2>", "<useful word or phrase 3>"],
  "timeLimit": "{time_limit}",
  "expectedLength": "{expected_length}",
  "tips": ["<helpful tip 1>", "<helpful tip 2>"]
}}"""
