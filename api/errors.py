"""Translate pipeline errors into HTTP errors.

Validation problems are the caller's to fix (400); configuration problems
mean the service is not set up (503); evaluation failures are worth
retrying later (502).
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException

from errors import (
    ConfigurationError,
    EvaluationError,
    GradingPipelineError,
    SubmissionValidationError,
)

logger = logging.getLogger(__name__)


def raise_http_error(exc: GradingPipelineError) -> NoReturn:
    if isinstance(exc, SubmissionValidationError):
        raise HTTPException(
            status_code=400,
            detail={"kind": "validation", "field": exc.field, "message": str(exc)},
        ) from exc
    if isinstance(exc, ConfigurationError):
        logger.error("Evaluation service misconfigured: %s", exc)
        raise HTTPException(
            status_code=503,
            detail={"kind": "configuration", "message": str(exc)},
        ) from exc
    if isinstance(exc, EvaluationError):
        raise HTTPException(
            status_code=502,
            detail={
                "kind": "evaluation",
                "message": "Grading failed, please try again later",
                "reason": str(exc),
            },
        ) from exc
    raise HTTPException(status_code=500, detail={"kind": "internal", "message": str(exc)}) from exc
