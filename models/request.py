"""API request / response models."""

from __future__ import annotations

from pydantic import Field

from models.base import CamelModel
from models.exam import SubmissionAsset
from models.grading import GradingResult
from models.submission import Submission


class StudentInfo(CamelModel):
    """Identity fields entered by the student before submitting."""

    student_name: str = ""
    student_id: str = ""  # student identifier / class code


class SubmitRequest(CamelModel):
    """POST /api/submissions — request body."""

    student: StudentInfo
    pages: list[SubmissionAsset] = Field(default_factory=list)


class SubmitResponse(CamelModel):
    """POST /api/submissions — response body."""

    submission_id: str
    status: str
    result: GradingResult


class RemediationRequest(CamelModel):
    """POST /api/submissions/remediation — request body.

    Either ``prior_result`` is sent back by the client, or it is loaded from
    the store by ``submission_id``.  ``submission_id`` is also what lets the
    remediation outcome replace the stored result.
    """

    student: StudentInfo
    prior_result: GradingResult | None = None
    pages: list[SubmissionAsset] = Field(default_factory=list)
    submission_id: str | None = None


class ScanReport(CamelModel):
    """Outcome of one integrity scan pass."""

    flagged_pairs: int = 0
    flagged_submission_ids: list[str] = Field(default_factory=list)
    updated_submission_ids: list[str] = Field(default_factory=list)
    scanned: int = 0


class SubmissionSummary(CamelModel):
    """GET /api/submissions — one row of the listing (pages omitted)."""

    id: str
    student_name: str
    student_id: str
    submission_time: float
    status: str
    page_count: int = 0
    total_score: float | None = None
    max_total_score: float | None = None
    letter_grade: str | None = None
    plagiarism_detected: bool = False
    error_reason: str | None = None

    @classmethod
    def from_submission(cls, submission: Submission) -> SubmissionSummary:
        result = submission.result
        analysis = result.integrity_analysis if result else None
        return cls(
            id=submission.id,
            student_name=submission.student_name,
            student_id=submission.student_id,
            submission_time=submission.submission_time,
            status=submission.status.value,
            page_count=len(submission.pages),
            total_score=result.total_score if result else None,
            max_total_score=result.max_total_score if result else None,
            letter_grade=result.letter_grade if result else None,
            plagiarism_detected=bool(analysis and analysis.plagiarism_detected),
            error_reason=submission.error_reason,
        )
