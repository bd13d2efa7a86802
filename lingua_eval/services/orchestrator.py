from __future__ import annotations

import logging
from time import perf_counter
from typing import Dict, List, Optional

from lingua_eval.core.concurrency import WorkerPool
from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import (
    ConfigurationError,
    FeedbackNotFound,
    PipelineFailure,
    StateTransitionError,
)
from lingua_eval.models.evaluation import BatchItemResult, Challenge, Evaluation, Feedback
from lingua_eval.models.submission import ALLOWED_TRANSITIONS, Submission, SubmissionStatus
from lingua_eval.services.evaluation.feedback import FeedbackSynthesizer
from lingua_eval.services.evaluation.mistakes import MistakeDetector
from lingua_eval.services.evaluation.scoring import ScoringEngine
from lingua_eval.services.notifier import LoggingNotifier, Notifier
from lingua_eval.storage.base import EvaluationStore

logger = logging.getLogger(__name__)


class EvaluationOrchestrator:
    """Drives a submission through its lifecycle.

    Flow:
      pending|failed → evaluating → score → mistakes → feedback → completed
    Any stage error marks the submission failed and is re-raised.
    """

    def __init__(
        self,
        store: EvaluationStore,
        scoring: ScoringEngine,
        mistakes: MistakeDetector,
        feedback: FeedbackSynthesizer,
        notifier: Optional[Notifier] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.store = store
        self.scoring = scoring
        self.mistakes = mistakes
        self.feedback = feedback
        self.notifier = notifier or LoggingNotifier()
        self.max_concurrency = max_concurrency or settings.MAX_CONCURRENCY

    async def _transition(self, submission_id: str, current: SubmissionStatus, target: SubmissionStatus) -> None:
        if target not in ALLOWED_TRANSITIONS.get(current, ()):
            raise StateTransitionError(
                f"Cannot move submission {submission_id} from {current} to {target}",
                {"submission_id": submission_id, "from": current, "to": target},
            )
        await self.store.update_status(submission_id, target)

    async def _mark_failed(self, submission_id: str) -> None:
        try:
            await self._transition(submission_id, "evaluating", "failed")
        except Exception:  # noqa: BLE001
            logger.exception(f"Could not mark submission {submission_id} as failed")

    async def evaluate(self, submission_id: str) -> Evaluation:
        submission = await self.store.get_submission(submission_id)
        await self._transition(submission_id, submission.status, "evaluating")
        return await self._run_pipeline(submission)

    async def retry(self, submission_id: str) -> Evaluation:
        submission = await self.store.get_submission(submission_id)
        if submission.status != "failed":
            raise StateTransitionError(
                f"Only failed submissions can be retried; {submission_id} is {submission.status}",
                {"submission_id": submission_id, "from": submission.status},
            )
        logger.info(f"Retrying evaluation for submission {submission_id}")
        await self._transition(submission_id, submission.status, "evaluating")
        return await self._run_pipeline(submission)

    async def _run_pipeline(self, submission: Submission) -> Evaluation:
        submission_id = submission.submission_id
        level = submission.proficiency_level
        timings_ms: Dict[str, float] = {}
        t0 = perf_counter()
        stage = "scoring"

        try:
            evaluation = await self.scoring.score(submission, level)
            evaluation = await self.store.save_evaluation(evaluation)
            t1 = perf_counter()
            timings_ms["scoring"] = (t1 - t0) * 1000.0

            stage = "mistakes"
            mistakes = await self.mistakes.detect_mistakes(evaluation, submission)
            mistakes = await self.store.replace_mistakes(evaluation.evaluation_id, mistakes)
            t2 = perf_counter()
            timings_ms["mistakes"] = (t2 - t1) * 1000.0

            stage = "feedback"
            feedback = await self.feedback.synthesize(evaluation, mistakes, submission, level)
            feedback = await self.store.save_feedback(feedback)
            t3 = perf_counter()
            timings_ms["feedback"] = (t3 - t2) * 1000.0

            stage = "finalize"
            await self._transition(submission_id, "evaluating", "completed")
        except ConfigurationError as exc:
            logger.error(f"Evaluation failed for submission {submission_id} at stage {stage}: {exc.message}")
            await self._mark_failed(submission_id)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Evaluation failed for submission {submission_id} at stage {stage}: {exc}")
            await self._mark_failed(submission_id)
            raise PipelineFailure(
                f"Stage '{stage}' failed for submission {submission_id}: {exc}",
                stage=stage,
                submission_id=submission_id,
            ) from exc

        timings_ms["total"] = (perf_counter() - t0) * 1000.0
        logger.info(
            f"Evaluation completed for submission {submission_id}: score {evaluation.overall_score} "
            f"({evaluation.ai_provider}), {len(mistakes)} mistakes, timings {timings_ms}"
        )

        await self._notify(submission.student_id, evaluation.evaluation_id, feedback.feedback_id)
        return evaluation

    async def _notify(self, student_id: str, evaluation_id: str, feedback_id: str) -> None:
        try:
            await self.notifier.notify_evaluation_completed(student_id, evaluation_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Completion notification failed for evaluation {evaluation_id}: {exc}")
        try:
            await self.notifier.notify_feedback_ready(student_id, feedback_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Feedback notification failed for feedback {feedback_id}: {exc}")

    async def run_batch(self, limit: Optional[int] = None, concurrency: Optional[int] = None) -> List[BatchItemResult]:
        """Evaluate up to ``limit`` pending submissions; one failure never stops the rest."""
        pending = await self.store.find_pending(limit if limit is not None else settings.BATCH_LIMIT)
        pool = WorkerPool(max_workers=concurrency or self.max_concurrency)
        logger.info(f"Starting batch evaluation for {len(pending)} submissions (workers={pool.max_workers})")

        async def _one(submission: Submission) -> BatchItemResult:
            try:
                evaluation = await self.evaluate(submission.submission_id)
                return BatchItemResult(submission_id=submission.submission_id, success=True, evaluation=evaluation)
            except Exception as exc:  # noqa: BLE001
                logger.error(f"Batch evaluation failed for {submission.submission_id}: {exc}")
                return BatchItemResult(submission_id=submission.submission_id, success=False, error=str(exc))

        results = await pool.map(_one, pending)
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Batch finished: {succeeded}/{len(results)} succeeded")
        return results

    async def summarize_feedback(self, feedback_id: str) -> Feedback:
        feedback = await self.store.get_feedback(feedback_id)
        if feedback is None:
            raise FeedbackNotFound(f"Feedback not found: {feedback_id}")
        if feedback.is_summarized:
            return feedback
        summarized = await self.feedback.summarize(feedback)
        return await self.store.save_feedback(summarized)

    async def detect_challenges(self, student_id: str, limit: Optional[int] = None) -> List[Challenge]:
        return await self.mistakes.detect_challenges(student_id, limit)
