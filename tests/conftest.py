"""Shared pytest fixtures for the grading pipeline tests.

Provides:
- ``settings``: Settings with a dummy provider key and no retry delay
- ``submission_store`` / ``exam_store``: fresh in-memory stores per test
- ``page``: a tiny valid base64 image asset
- ``exam``: an exam with a general key and one per-question key
- ``judge_payload``: factory for raw judge JSON dicts
- ``make_result``: factory for validated GradingResult objects
- ``make_graded``: factory for GRADED submissions
"""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock

import pytest

from config.settings import Settings
from models.exam import ExamConfiguration, QuestionSpec, SubmissionAsset
from models.grading import GradingResult
from models.submission import Submission
from services.exam_store import InMemoryExamConfigStore
from services.submission_store import InMemorySubmissionStore

# 1x1 transparent PNG
PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        grading_model="gemini/gemini-2.5-pro",
        evaluation_retry_delay=0,
        evaluation_timeout=5,
    )


@pytest.fixture
def submission_store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def exam_store() -> InMemoryExamConfigStore:
    return InMemoryExamConfigStore()


@pytest.fixture
def page() -> SubmissionAsset:
    return SubmissionAsset(data=PNG_B64, mime_type="image/png", filename="page1.png")


@pytest.fixture
def exam(page) -> ExamConfiguration:
    return ExamConfiguration(
        id="exam-1",
        title="Algebra midterm",
        instructions="Award partial credit for correct working.",
        questions=[
            QuestionSpec(id="q1", label="Question 1", answer_key=page),
            QuestionSpec(id="q2", label="Question 2"),
        ],
        general_answer_key=SubmissionAsset(data=PNG_B64, mime_type="image/png"),
    )


@pytest.fixture
def judge_payload():
    def _make(**overrides) -> dict:
        payload = {
            "totalScore": 8,
            "maxTotalScore": 10,
            "summary": "Solid work overall.",
            "letterGrade": "B",
            "corrections": [
                {
                    "questionId": "q1",
                    "studentAnswer": "x = 2",
                    "correctAnswer": "x = 2",
                    "isCorrect": True,
                    "explanation": "Correct.",
                    "pointsAwarded": 5,
                    "maxPoints": 5,
                },
                {
                    "questionId": "q2",
                    "studentAnswer": "y = 4",
                    "correctAnswer": "y = 3",
                    "isCorrect": False,
                    "explanation": "Arithmetic slip in the last step.",
                    "pointsAwarded": 3,
                    "maxPoints": 5,
                },
            ],
            "studentHandwritingTranscription": "x = 2 and y = 4",
            "integrityAnalysis": {
                "isSuspicious": False,
                "suspicionLevel": "NONE",
                "reasons": [],
            },
            "textbookKnowledge": "Linear equations in one variable.",
            "solutionMethod": "Isolate the variable.",
            "practiceProblems": [
                {"id": "p1", "content": "Solve $2x + 1 = 5$."},
            ],
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def make_result(judge_payload):
    def _make(**overrides) -> GradingResult:
        return GradingResult.model_validate(judge_payload(**overrides))

    return _make


@pytest.fixture
def make_graded(make_result, page):
    counter = itertools.count(1)

    def _make(name: str, transcription: str, **overrides) -> Submission:
        n = next(counter)
        sub = Submission(
            id=f"sub-{n:03d}",
            student_name=name,
            student_id=f"S{n:03d}",
            submission_time=1_700_000_000 + n,
            pages=[page],
        )
        sub.mark_graded(make_result(studentHandwritingTranscription=transcription, **overrides))
        return sub

    return _make


@pytest.fixture
def gateway(make_result) -> AsyncMock:
    """Stand-in for EvaluationGateway returning a fixed result."""
    mock = AsyncMock()
    mock.evaluate.return_value = make_result()
    mock.evaluate_remediation.return_value = make_result(
        totalScore=3, maxTotalScore=3, summary="Remediation complete.", practiceProblems=[]
    )
    return mock
