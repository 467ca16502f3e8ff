"""Grading result models — the structured output of one evaluation call.

These mirror the JSON schema the evaluation service is asked to return.
Score bounds and the plagiarism-flag invariant are enforced at validation
time, so a malformed judge response fails fast in the gateway.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, model_validator

from models.base import CamelModel

MAX_PRACTICE_PROBLEMS = 3


class SuspicionLevel(str, Enum):
    """Integrity suspicion levels, ordered NONE < LOW < MEDIUM < HIGH."""

    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _SUSPICION_RANK[self]


_SUSPICION_RANK = {
    SuspicionLevel.NONE: 0,
    SuspicionLevel.LOW: 1,
    SuspicionLevel.MEDIUM: 2,
    SuspicionLevel.HIGH: 3,
}


class CorrectionPoint(CamelModel):
    """Per-question grading detail."""

    question_id: str
    student_answer: str
    correct_answer: str
    is_correct: bool
    explanation: str
    points_awarded: float = Field(ge=0)
    max_points: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_points(self) -> CorrectionPoint:
        if self.points_awarded > self.max_points:
            raise ValueError(
                f"pointsAwarded ({self.points_awarded}) exceeds maxPoints "
                f"({self.max_points}) for question {self.question_id!r}"
            )
        return self


class JudgeAssessment(CamelModel):
    """The judge's own suspicion verdict, kept while a scanner flag overrides it."""

    is_suspicious: bool
    suspicion_level: SuspicionLevel


class IntegrityAnalysis(CamelModel):
    """Suspicion metadata attached to a grading result.

    ``plagiarism_detected``, the ``matched_*`` fields, ``escalated_from`` and
    ``scanner_created`` are written only by the integrity scanner; the judge
    fills the rest.
    """

    is_suspicious: bool
    suspicion_level: SuspicionLevel
    reasons: list[str] = Field(default_factory=list)
    plagiarism_detected: bool = False
    matched_student_name: str | None = None
    matched_submission_id: str | None = None
    escalated_from: JudgeAssessment | None = None
    scanner_created: bool = False

    @model_validator(mode="after")
    def _check_plagiarism_flag(self) -> IntegrityAnalysis:
        if self.plagiarism_detected and not self.supports_plagiarism_flag():
            raise ValueError(
                "plagiarismDetected requires isSuspicious=true and suspicionLevel HIGH"
            )
        return self

    def supports_plagiarism_flag(self) -> bool:
        return self.is_suspicious and self.suspicion_level.rank >= SuspicionLevel.HIGH.rank

    def clear_match(self) -> None:
        """Drop scanner-owned fields and restore the judge's assessment."""
        self.plagiarism_detected = False
        self.matched_student_name = None
        self.matched_submission_id = None
        if self.escalated_from is not None:
            self.is_suspicious = self.escalated_from.is_suspicious
            self.suspicion_level = self.escalated_from.suspicion_level
            self.escalated_from = None

    def mark_match(self, student_name: str, submission_id: str) -> None:
        """Flag a cross-submission match, escalating suspicion to HIGH."""
        if self.escalated_from is None and not self.supports_plagiarism_flag():
            self.escalated_from = JudgeAssessment(
                is_suspicious=self.is_suspicious, suspicion_level=self.suspicion_level
            )
        self.is_suspicious = True
        self.suspicion_level = SuspicionLevel.HIGH
        self.plagiarism_detected = True
        self.matched_student_name = student_name
        self.matched_submission_id = submission_id


class PracticeProblem(CamelModel):
    """A remedial question generated alongside a grading result."""

    id: str
    content: str  # LaTeX-formatted problem statement


class GradingResult(CamelModel):
    """Structured output of one grading (or remediation) call."""

    total_score: float = Field(ge=0)
    max_total_score: float = Field(ge=0)
    summary: str
    letter_grade: str
    corrections: list[CorrectionPoint]
    student_handwriting_transcription: str
    integrity_analysis: IntegrityAnalysis | None = None

    # Enrichment
    textbook_knowledge: str | None = None
    solution_method: str | None = None
    practice_problems: list[PracticeProblem] = Field(
        default_factory=list, max_length=MAX_PRACTICE_PROBLEMS
    )

    @model_validator(mode="after")
    def _check_total(self) -> GradingResult:
        if self.total_score > self.max_total_score:
            raise ValueError(
                f"totalScore ({self.total_score}) exceeds maxTotalScore "
                f"({self.max_total_score})"
            )
        return self

    def append_summary_warning(self, marker: str, message: str) -> bool:
        """Append *message* to the summary unless *marker* is already present.

        The summary is append-only after creation.  Returns True when text
        was appended.
        """
        if marker in self.summary:
            return False
        self.summary += message
        return True

    def clear_integrity_match(self) -> None:
        """Undo every scanner change to the integrity analysis."""
        analysis = self.integrity_analysis
        if analysis is None:
            return
        if analysis.scanner_created:
            self.integrity_analysis = None
        else:
            analysis.clear_match()
