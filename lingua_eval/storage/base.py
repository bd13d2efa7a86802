from typing import List, Optional, Protocol, Sequence

from lingua_eval.models.evaluation import Evaluation, Feedback, Mistake
from lingua_eval.models.submission import Submission, SubmissionStatus


class EvaluationStore(Protocol):
    """Persistence the pipeline reads submissions from and writes results to.

    Each write is expected to be atomic on its own; the pipeline does not
    wrap several writes in a transaction.
    """

    async def get_submission(self, submission_id: str) -> Submission:
        """Raises ``SubmissionNotFound`` for an unknown id."""
        ...

    async def update_status(self, submission_id: str, status: SubmissionStatus) -> None: ...

    async def find_pending(self, limit: int) -> List[Submission]: ...

    async def save_evaluation(self, evaluation: Evaluation) -> Evaluation:
        """Upsert keyed by submission; reviewer fields of an existing record survive."""
        ...

    async def replace_mistakes(self, evaluation_id: str, mistakes: Sequence[Mistake]) -> List[Mistake]: ...

    async def list_mistakes(self, evaluation_ids: Sequence[str]) -> List[Mistake]: ...

    async def save_feedback(self, feedback: Feedback) -> Feedback:
        """Upsert keyed by evaluation."""
        ...

    async def get_feedback(self, feedback_id: str) -> Optional[Feedback]: ...

    async def find_recent_submissions(self, student_id: str, limit: int) -> List[Submission]: ...

    async def find_evaluations(self, submission_ids: Sequence[str]) -> List[Evaluation]: ...
