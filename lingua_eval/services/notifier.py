import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Best-effort completion hooks; delivery itself lives outside the pipeline."""

    async def notify_evaluation_completed(self, student_id: str, evaluation_id: str) -> None: ...

    async def notify_feedback_ready(self, student_id: str, feedback_id: str) -> None: ...


class LoggingNotifier:
    async def notify_evaluation_completed(self, student_id: str, evaluation_id: str) -> None:
        logger.info(f"Evaluation {evaluation_id} completed for student {student_id}")

    async def notify_feedback_ready(self, student_id: str, feedback_id: str) -> None:
        logger.info(f"Feedback {feedback_id} ready for student {student_id}")
