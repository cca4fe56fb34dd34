"""
Error taxonomy for the Adaptive Practice Interview Engine.

Every error carries a `retryable` flag so a request layer can decide whether
to ask the caller to try again.
"""


class InterviewEngineError(Exception):
    """Base class for all engine errors."""

    retryable = False


class ConfigurationError(InterviewEngineError):
    """Missing or invalid rubric/question data. Must be fixed upstream."""


class EvaluationUnavailableError(InterviewEngineError):
    """Neither the primary nor the fallback matcher could judge the answer."""

    retryable = True


class EvaluationTimeoutError(EvaluationUnavailableError):
    """The matcher did not answer within the configured timeout."""


class NoEligibleQuestionsError(InterviewEngineError):
    """No question matches the selection criteria. Ends the session."""


class InvalidStateError(InterviewEngineError):
    """Operation attempted in a phase that does not allow it."""


class SessionBusyError(InterviewEngineError):
    """Another cycle is already running for this session."""

    retryable = True


class ConcurrentModificationError(InterviewEngineError):
    """The stored session version changed since the cycle started."""

    retryable = True


class NotFoundError(InterviewEngineError):
    """Unknown session id or question id."""
