"""Custom exception hierarchy for the grading pipeline."""

from errors.exceptions import (
    ConfigurationError,
    EvaluationError,
    EvaluationResponseError,
    GradingPipelineError,
    SubmissionValidationError,
)

__all__ = [
    "ConfigurationError",
    "EvaluationError",
    "EvaluationResponseError",
    "GradingPipelineError",
    "SubmissionValidationError",
]
