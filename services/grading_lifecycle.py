"""Grading lifecycle — drives a submission from upload to graded.

States::

    PENDING ──evaluate ok──► GRADED ──remediation──► GRADED (result replaced)
       └─────evaluate fails──► ERROR   (only when record_failed_submissions)

Validation happens before any network call.  On gateway failure nothing is
persisted unless ``record_failed_submissions`` is on, in which case an
ERROR record is kept for audit.  Errors from the gateway always propagate
unchanged to the caller.
"""

from __future__ import annotations

import logging

from config.settings import Settings, get_settings
from errors import EvaluationError, SubmissionValidationError
from models.exam import ExamConfiguration, SubmissionAsset
from models.grading import GradingResult
from models.request import StudentInfo
from models.submission import Submission
from services.evaluation_gateway import (
    EvaluationContext,
    EvaluationGateway,
    EvaluationMaterials,
)
from services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)


def validate_submission(
    student: StudentInfo,
    pages: list[SubmissionAsset],
    exam: ExamConfiguration | None,
) -> None:
    """Raise :class:`SubmissionValidationError` if anything required is missing."""
    if not student.student_name.strip():
        raise SubmissionValidationError("studentName", "Student name is required")
    if not student.student_id.strip():
        raise SubmissionValidationError("studentId", "Student id / class code is required")
    if not pages:
        raise SubmissionValidationError("pages", "At least one page of work is required")
    if exam is None:
        raise SubmissionValidationError("exam", "No exam has been configured yet")
    if not exam.is_gradable():
        raise SubmissionValidationError(
            "exam", "The exam needs at least one question and an answer key"
        )


def build_materials(exam: ExamConfiguration) -> EvaluationMaterials:
    """Role-tagged answer keys and reference material for *exam*."""
    return EvaluationMaterials.from_exam(exam)


class GradingLifecycleManager:
    """Coordinates the evaluation gateway and the submission store."""

    def __init__(
        self,
        gateway: EvaluationGateway,
        store: SubmissionStore,
        settings: Settings | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._settings = settings or get_settings()

    async def grade_submission(
        self,
        student: StudentInfo,
        pages: list[SubmissionAsset],
        exam: ExamConfiguration | None,
    ) -> Submission:
        """Validate, evaluate and persist a new submission.

        Returns the stored submission in GRADED state.
        """
        validate_submission(student, pages, exam)

        submission = Submission(
            student_name=student.student_name.strip(),
            student_id=student.student_id.strip(),
            pages=list(pages),
        )
        context = EvaluationContext(
            instructions=exam.instructions,
            student_context=submission.student_id,
        )

        try:
            result = await self._gateway.evaluate(
                build_materials(exam), submission.pages, context
            )
        except EvaluationError as exc:
            if self._settings.record_failed_submissions:
                submission.mark_errored(str(exc))
                await self._store.put(submission)
                logger.info(
                    "Recorded failed submission %s for %s", submission.id, submission.student_name
                )
            raise

        submission.mark_graded(result)
        await self._store.put(submission)
        logger.info(
            "Graded submission %s for %s: %s/%s (%s)",
            submission.id, submission.student_name,
            result.total_score, result.max_total_score, result.letter_grade,
        )
        return submission

    async def submit(
        self,
        student: StudentInfo,
        pages: list[SubmissionAsset],
        exam: ExamConfiguration | None,
    ) -> GradingResult:
        """Grade a submission and return its result."""
        submission = await self.grade_submission(student, pages, exam)
        return submission.result

    async def submit_remediation(
        self,
        prior_result: GradingResult | None,
        pages: list[SubmissionAsset],
        student: StudentInfo,
        submission_id: str | None = None,
    ) -> GradingResult:
        """Grade remedial work for the practice problems of *prior_result*.

        The returned result replaces the caller's view.  The stored
        submission is only overwritten when ``persist_remediation`` is on
        and *submission_id* names an existing submission.
        """
        if prior_result is None or not prior_result.practice_problems:
            raise SubmissionValidationError(
                "practiceProblems", "The prior result has no practice problems"
            )
        if not pages:
            raise SubmissionValidationError("pages", "At least one page of work is required")

        context = EvaluationContext(student_context=student.student_id.strip())
        result = await self._gateway.evaluate_remediation(
            prior_result.practice_problems, list(pages), context
        )
        logger.info(
            "Graded remediation for %s: %s/%s",
            student.student_id or "unknown", result.total_score, result.max_total_score,
        )

        if submission_id and self._settings.persist_remediation:
            submission = await self._store.get(submission_id)
            if submission is None:
                logger.warning("Remediation target submission not found: %s", submission_id)
            else:
                submission.mark_graded(result)
                await self._store.put(submission)

        return result
