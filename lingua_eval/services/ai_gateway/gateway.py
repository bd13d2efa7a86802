import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from lingua_eval.core.concurrency import run_with_timeout
from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import ParseError, UpstreamAIError
from lingua_eval.models.evaluation import Evaluation, Mistake
from lingua_eval.models.gateway import (
    ActivityPrompt,
    ChallengeList,
    ErrorList,
    FeedbackResult,
    QuestionDraft,
    ScoreResult,
    ShortAnswerJudgment,
)
from lingua_eval.models.submission import Rubric, Submission, normalize_level
from lingua_eval.services.ai_gateway import parsers, prompts
from lingua_eval.utils.prompt_loader import PromptLoader
from lingua_eval.utils.tracer import LLM

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AIGateway:
    """Single entry point to the generative model.

    One prompt in, one response out, per call. Transport problems surface as
    ``UpstreamAIError``; undecodable responses never do: they come back as the
    documented default record with ``degraded=True``.
    """

    def __init__(
        self,
        llm: Optional[LLM],
        loader: Optional[PromptLoader] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.llm = llm
        self.loader = loader or PromptLoader(version=settings.PROMPT_VERSION)
        self.timeout = settings.API_TIMEOUT_S if timeout is None else timeout

    @property
    def online(self) -> bool:
        return self.llm is not None

    @property
    def model_name(self) -> str:
        return getattr(self.llm, "deployment", None) or "azure-openai"

    async def _complete(
        self,
        prompt: str,
        *,
        name: str,
        meta: Optional[Dict[str, Any]] = None,
        json_mode: bool = True,
    ) -> str:
        if self.llm is None:
            raise UpstreamAIError("No LLM client configured", {"operation": name})

        messages = [{"role": "user", "content": prompt}]
        start_time = time.time()
        try:
            response = await run_with_timeout(
                self.llm.run_azure_openai(
                    messages=messages,
                    json_mode=json_mode,
                    name=name,
                    prompt_meta={"operation": name, **(meta or {})},
                ),
                self.timeout,
                name=name,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamAIError(f"{name} timed out after {self.timeout}s", {"operation": name}) from exc
        except UpstreamAIError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise UpstreamAIError(f"{name} failed: {exc}", {"operation": name}) from exc

        execution_time = time.time() - start_time
        logger.info(f"LLM execution time for {name}: {execution_time:.3f} seconds")

        token_usage = response.get("usage", {}) if isinstance(response, dict) else {}
        if token_usage:
            logger.info(
                f"Token usage for {name} - Prompt: {token_usage.get('prompt_tokens', 0)}, "
                f"Completion: {token_usage.get('completion_tokens', 0)}, "
                f"Total: {token_usage.get('total_tokens', 0)}"
            )

        content = response.get("content") if isinstance(response, dict) else None
        return content if isinstance(content, str) else ""

    def _decode(self, name: str, text: str, parse: Callable[[str], T], default: Callable[[], T]) -> T:
        try:
            return parse(text)
        except ParseError as exc:
            logger.warning(f"Could not decode {name} response ({exc.message}); using default")
            logger.debug(f"{name} raw response: {text[:500]}")
            return default()

    # ---------- evaluation ----------

    async def score(
        self,
        content: str,
        content_type: str,
        rubric: Optional[Rubric] = None,
        level: str = "B1",
    ) -> ScoreResult:
        level = normalize_level(level)
        prompt = prompts.build_score_prompt(self.loader, content, content_type, rubric, level)
        text = await self._complete(
            prompt, name="score", meta={"level": level, "content_type": content_type, "text_length": len(content)}
        )
        return self._decode("score", text, parsers.parse_score, parsers.default_score)

    async def detect_errors(self, content: str, content_type: str, level: str = "B1") -> ErrorList:
        level = normalize_level(level)
        prompt = prompts.build_errors_prompt(self.loader, content, content_type, level)
        text = await self._complete(
            prompt, name="detect_errors", meta={"level": level, "content_type": content_type}
        )
        return self._decode("detect_errors", text, parsers.parse_errors, parsers.default_errors)

    async def detect_recurring_challenges(self, samples: Sequence[Submission]) -> ChallengeList:
        prompt = prompts.build_challenges_prompt(samples)
        text = await self._complete(prompt, name="detect_challenges", meta={"sample_count": len(samples)})
        return self._decode("detect_challenges", text, parsers.parse_challenges, parsers.default_challenges)

    async def synthesize_feedback(
        self,
        evaluation: Evaluation,
        mistakes: Sequence[Mistake],
        content_type: str,
        level: str = "B1",
    ) -> FeedbackResult:
        level = normalize_level(level)
        prompt = prompts.build_feedback_prompt(self.loader, evaluation, mistakes, content_type, level)
        text = await self._complete(
            prompt,
            name="synthesize_feedback",
            meta={"level": level, "content_type": content_type, "mistake_count": len(mistakes)},
        )
        return self._decode("synthesize_feedback", text, parsers.parse_feedback, parsers.default_feedback)

    async def judge_short_answer(self, question_text: str, expected: str, answer: str) -> ShortAnswerJudgment:
        prompt = prompts.build_short_answer_prompt(question_text, expected, answer)
        text = await self._complete(prompt, name="judge_short_answer")
        return self._decode("judge_short_answer", text, parsers.parse_short_answer, parsers.default_short_answer)

    async def summarize_text(self, text: str) -> str:
        """Plain-text summary; an empty reply counts as an upstream failure."""
        reply = await self._complete(prompts.build_summary_prompt(text), name="summarize", json_mode=False)
        summary = parsers.strip_fences(reply)
        if not summary:
            raise UpstreamAIError("Empty summary returned by model", {"operation": "summarize"})
        return summary

    # ---------- authoring ----------

    async def generate_questions(
        self, activity_type: str, level: str, topic: str, count: int = 5
    ) -> Union[List[QuestionDraft], ActivityPrompt]:
        """Quiz questions for ``quiz``; a guided activity prompt for speaking/writing."""
        level = normalize_level(level)
        prompt = prompts.build_questions_prompt(self.loader, activity_type, level, topic, count)
        text = await self._complete(
            prompt, name="generate_questions", meta={"level": level, "activity_type": activity_type}
        )
        if activity_type == "quiz":
            question_set = self._decode("generate_questions", text, parsers.parse_questions, parsers.default_questions)
            return question_set.questions[:count] if count > 0 else question_set.questions
        return self._decode(
            "generate_questions",
            text,
            parsers.parse_activity_prompt,
            lambda: parsers.default_activity_prompt(activity_type, topic),
        )

    async def generate_prompt(self, activity_type: str, level: str, topic: str) -> ActivityPrompt:
        level = normalize_level(level)
        prompt = prompts.build_activity_prompt(self.loader, activity_type, level, topic)
        text = await self._complete(
            prompt, name="generate_prompt", meta={"level": level, "activity_type": activity_type}
        )
        return self._decode(
            "generate_prompt",
            text,
            parsers.parse_activity_prompt,
            lambda: parsers.default_activity_prompt(activity_type, topic),
        )
