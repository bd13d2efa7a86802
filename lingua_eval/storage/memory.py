"""In-memory evaluation store for tests and the command line."""
import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from lingua_eval.core.exceptions import SubmissionNotFound
from lingua_eval.models.evaluation import Evaluation, Feedback, Mistake
from lingua_eval.models.submission import Submission, SubmissionStatus

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Dict-backed ``EvaluationStore``.

    Records are copied on the way in and out, so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._submissions: Dict[str, Submission] = {}
        self._evaluations: Dict[str, Evaluation] = {}  # by submission id
        self._mistakes: Dict[str, List[Mistake]] = {}  # by evaluation id
        self._feedback: Dict[str, Feedback] = {}  # by feedback id
        self._lock = asyncio.Lock()

    async def add_submission(self, submission: Submission) -> Submission:
        async with self._lock:
            self._submissions[submission.submission_id] = submission.model_copy(deep=True)
        return submission

    async def get_submission(self, submission_id: str) -> Submission:
        async with self._lock:
            submission = self._submissions.get(submission_id)
            if submission is None:
                raise SubmissionNotFound(f"Submission not found: {submission_id}")
            return submission.model_copy(deep=True)

    async def update_status(self, submission_id: str, status: SubmissionStatus) -> None:
        async with self._lock:
            submission = self._submissions.get(submission_id)
            if submission is None:
                raise SubmissionNotFound(f"Submission not found: {submission_id}")
            self._submissions[submission_id] = submission.model_copy(update={"status": status})
        logger.debug(f"Submission {submission_id} -> {status}")

    async def find_pending(self, limit: int) -> List[Submission]:
        async with self._lock:
            pending = [s for s in self._submissions.values() if s.status == "pending"]
            pending.sort(key=lambda s: s.submitted_at)
            return [s.model_copy(deep=True) for s in pending[:max(0, limit)]]

    async def save_evaluation(self, evaluation: Evaluation) -> Evaluation:
        async with self._lock:
            existing = self._evaluations.get(evaluation.submission_id)
            if existing is not None:
                evaluation = evaluation.model_copy(update={
                    "evaluation_id": existing.evaluation_id,
                    "teacher_reviewed": existing.teacher_reviewed,
                    "teacher_notes": existing.teacher_notes,
                })
            self._evaluations[evaluation.submission_id] = evaluation.model_copy(deep=True)
            return evaluation

    async def get_evaluation(self, submission_id: str) -> Optional[Evaluation]:
        async with self._lock:
            evaluation = self._evaluations.get(submission_id)
            return evaluation.model_copy(deep=True) if evaluation else None

    async def review_evaluation(self, submission_id: str, notes: Optional[str] = None) -> Evaluation:
        """Reviewer side-channel: mark an evaluation as reviewed."""
        async with self._lock:
            evaluation = self._evaluations.get(submission_id)
            if evaluation is None:
                raise SubmissionNotFound(f"No evaluation for submission {submission_id}")
            evaluation = evaluation.model_copy(update={"teacher_reviewed": True, "teacher_notes": notes})
            self._evaluations[submission_id] = evaluation
            return evaluation.model_copy(deep=True)

    async def replace_mistakes(self, evaluation_id: str, mistakes: Sequence[Mistake]) -> List[Mistake]:
        stored = [m.model_copy(update={"evaluation_id": evaluation_id}) for m in mistakes]
        async with self._lock:
            self._mistakes[evaluation_id] = stored
        return [m.model_copy(deep=True) for m in stored]

    async def list_mistakes(self, evaluation_ids: Sequence[str]) -> List[Mistake]:
        async with self._lock:
            return [
                m.model_copy(deep=True)
                for evaluation_id in evaluation_ids
                for m in self._mistakes.get(evaluation_id, [])
            ]

    async def save_feedback(self, feedback: Feedback) -> Feedback:
        async with self._lock:
            for existing in self._feedback.values():
                if existing.evaluation_id == feedback.evaluation_id and existing.feedback_id != feedback.feedback_id:
                    del self._feedback[existing.feedback_id]
                    feedback = feedback.model_copy(update={"feedback_id": existing.feedback_id})
                    break
            self._feedback[feedback.feedback_id] = feedback.model_copy(deep=True)
            return feedback

    async def get_feedback(self, feedback_id: str) -> Optional[Feedback]:
        async with self._lock:
            feedback = self._feedback.get(feedback_id)
            return feedback.model_copy(deep=True) if feedback else None

    async def get_feedback_for_evaluation(self, evaluation_id: str) -> Optional[Feedback]:
        async with self._lock:
            for feedback in self._feedback.values():
                if feedback.evaluation_id == evaluation_id:
                    return feedback.model_copy(deep=True)
            return None

    async def find_recent_submissions(self, student_id: str, limit: int) -> List[Submission]:
        async with self._lock:
            own = [s for s in self._submissions.values() if s.student_id == student_id]
            own.sort(key=lambda s: s.submitted_at, reverse=True)
            return [s.model_copy(deep=True) for s in own[:max(0, limit)]]

    async def find_evaluations(self, submission_ids: Sequence[str]) -> List[Evaluation]:
        async with self._lock:
            return [
                self._evaluations[sid].model_copy(deep=True)
                for sid in submission_ids
                if sid in self._evaluations
            ]
