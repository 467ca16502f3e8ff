"""Submission model — one student's work and its grading lifecycle.

The lifecycle is a tagged union discriminated on ``status``::

    PendingState  ──► GradedState(result)
          └────────► ErroredState(reason)

A graded submission always carries a result; there is no GRADED-without-
result state to represent.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import Field

from models.base import CamelModel
from models.exam import SubmissionAsset
from models.grading import GradingResult


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    GRADED = "GRADED"
    ERROR = "ERROR"


class PendingState(CamelModel):
    status: Literal["PENDING"] = "PENDING"


class GradedState(CamelModel):
    status: Literal["GRADED"] = "GRADED"
    result: GradingResult


class ErroredState(CamelModel):
    status: Literal["ERROR"] = "ERROR"
    reason: str


SubmissionState = Annotated[
    Union[PendingState, GradedState, ErroredState],
    Field(discriminator="status"),
]


def generate_submission_id() -> str:
    return f"sub-{uuid.uuid4().hex[:12]}"


class Submission(CamelModel):
    """A stored submission.  Owned by the submission store."""

    id: str = Field(default_factory=generate_submission_id)
    student_name: str
    student_id: str  # student identifier / class code
    submission_time: float = Field(default_factory=time.time)
    pages: list[SubmissionAsset] = Field(default_factory=list)
    state: SubmissionState = Field(default_factory=PendingState)

    @property
    def status(self) -> SubmissionStatus:
        return SubmissionStatus(self.state.status)

    @property
    def result(self) -> GradingResult | None:
        if isinstance(self.state, GradedState):
            return self.state.result
        return None

    @property
    def error_reason(self) -> str | None:
        if isinstance(self.state, ErroredState):
            return self.state.reason
        return None

    @property
    def transcription(self) -> str:
        """Transcribed student work, or ``""`` when not graded."""
        result = self.result
        return result.student_handwriting_transcription if result else ""

    def mark_graded(self, result: GradingResult) -> None:
        self.state = GradedState(result=result)

    def mark_errored(self, reason: str) -> None:
        self.state = ErroredState(reason=reason)
