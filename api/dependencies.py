"""FastAPI dependency providers for the grading pipeline.

Tests swap these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from config.settings import get_settings
from services.evaluation_gateway import EvaluationGateway
from services.exam_store import ExamConfigStore, get_exam_store
from services.grading_lifecycle import GradingLifecycleManager
from services.integrity_scanner import IntegrityScanner
from services.submission_store import SubmissionStore, get_submission_store


@lru_cache
def get_gateway() -> EvaluationGateway:
    return EvaluationGateway(settings=get_settings())


def get_store() -> SubmissionStore:
    return get_submission_store()


def get_exam_config_store() -> ExamConfigStore:
    return get_exam_store()


def get_lifecycle_manager() -> GradingLifecycleManager:
    return GradingLifecycleManager(
        gateway=get_gateway(),
        store=get_submission_store(),
        settings=get_settings(),
    )


def get_integrity_scanner() -> IntegrityScanner:
    return IntegrityScanner(store=get_submission_store(), settings=get_settings())
