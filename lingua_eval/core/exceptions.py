# lingua_eval/core/exceptions.py
from typing import Any, Dict, Optional


class EvaluationException(Exception):
    """Base exception for evaluation errors"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(EvaluationException):
    """Unknown content type, missing submission fields or broken level tables.

    Fatal: never retried and never routed to a fallback strategy.
    """
    pass


class UpstreamAIError(EvaluationException):
    """LLM connection/timeout errors"""
    pass


class ParseError(EvaluationException):
    """Model output could not be decoded into the expected shape"""
    pass


class DegradedResultError(EvaluationException):
    """The gateway answered with its own parse-failure default"""
    pass


class SubmissionNotFound(EvaluationException):
    """No submission with the requested id"""
    pass


class StateTransitionError(EvaluationException):
    """Lifecycle transition not allowed from the current status"""
    pass


class PipelineFailure(EvaluationException):
    """A stage failed even after its fallback; the submission is marked failed."""
    def __init__(self, message: str, *, stage: str, submission_id: str, details: Optional[Dict[str, Any]] = None):
        self.stage = stage
        self.submission_id = submission_id
        merged = {"stage": stage, "submission_id": submission_id, **(details or {})}
        super().__init__(message, merged)


class FeedbackNotFound(EvaluationException):
    """No feedback with the requested id"""
    pass
