"""Domain-specific exceptions for the grading pipeline.

These exceptions let the API layer tell "fix your input" failures apart
from "try again later" failures and respond with the right HTTP status.
"""

from __future__ import annotations


class GradingPipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(GradingPipelineError):
    """The evaluation service is not configured (e.g. missing API key).

    Fatal and never retried.
    """


class SubmissionValidationError(GradingPipelineError):
    """A submission or exam configuration is missing required data.

    Raised before any network call, so nothing is sent or persisted.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class EvaluationError(GradingPipelineError):
    """The evaluation call failed (transport error, timeout, provider error)."""

    def __init__(self, message: str, attempts: int = 1) -> None:
        self.attempts = attempts
        super().__init__(message)


class EvaluationResponseError(EvaluationError):
    """The evaluation service answered with an empty or malformed result.

    Response-shape failures are never retried.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw[:2000]
        super().__init__(message)
