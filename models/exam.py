"""Exam configuration and binary asset models."""

from __future__ import annotations

import base64
import binascii
import time
from enum import Enum

from pydantic import Field, field_validator

from models.base import CamelModel


class AssetRole(str, Enum):
    """Role of an asset inside an evaluation request."""

    GENERAL_KEY = "general_key"
    QUESTION_KEY = "question_key"
    REFERENCE = "reference"
    STUDENT_WORK = "student_work"


class SubmissionAsset(CamelModel):
    """Opaque binary payload (image or document) in transport encoding.

    Content is never interpreted; it is forwarded to the evaluation service.
    """

    data: str  # base64 payload, no data-URI prefix
    mime_type: str = "image/jpeg"
    encoding: str = "base64"
    filename: str = ""

    @field_validator("data")
    @classmethod
    def _check_data(cls, v: str) -> str:
        # Accept data URIs from browser uploads by stripping the prefix
        if v.startswith("data:") and "," in v:
            v = v.split(",", 1)[1]
        if not v.strip():
            raise ValueError("asset payload is empty")
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"asset payload is not valid base64: {exc}") from exc
        return v

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};{self.encoding},{self.data}"


class QuestionSpec(CamelModel):
    """One question of the exam, optionally with its own answer key."""

    id: str
    label: str  # "Question 1"
    answer_key: SubmissionAsset | None = None


class ExamConfiguration(CamelModel):
    """Teacher-defined exam: questions, answer keys and grading instructions."""

    id: str
    title: str
    instructions: str = ""
    questions: list[QuestionSpec] = Field(default_factory=list)
    general_answer_key: SubmissionAsset | None = None
    reference_file: SubmissionAsset | None = None
    created_at: float = Field(default_factory=time.time)

    def has_answer_key(self) -> bool:
        """True when a general key or at least one per-question key exists."""
        return self.general_answer_key is not None or any(
            q.answer_key is not None for q in self.questions
        )

    def is_gradable(self) -> bool:
        """True when the configuration can be sent for grading."""
        return bool(self.questions) and self.has_answer_key()
