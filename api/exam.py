"""Exam configuration API — the teacher-facing side of the pipeline.

Endpoints:
- ``GET    /api/exam`` — current configuration (404 when none)
- ``PUT    /api/exam`` — replace the configuration
- ``DELETE /api/exam`` — remove it
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_exam_config_store
from api.errors import raise_http_error
from errors import SubmissionValidationError
from models.exam import ExamConfiguration
from services.exam_store import ExamConfigStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["exam"])


@router.get("/exam", response_model=ExamConfiguration, response_model_by_alias=True)
async def get_exam(store: ExamConfigStore = Depends(get_exam_config_store)):
    config = await store.get_current()
    if config is None:
        raise HTTPException(status_code=404, detail="No exam has been configured")
    return config


@router.put("/exam", response_model=ExamConfiguration, response_model_by_alias=True)
async def put_exam(
    config: ExamConfiguration,
    store: ExamConfigStore = Depends(get_exam_config_store),
):
    """Save the exam.  A configuration with no answer key at all is rejected."""
    if not config.has_answer_key():
        raise_http_error(
            SubmissionValidationError(
                "answerKey",
                "Provide a general answer key or an answer key for at least one question",
            )
        )
    await store.save(config)
    logger.info("Saved exam %s (%d question(s))", config.id, len(config.questions))
    return config


@router.delete("/exam")
async def delete_exam(store: ExamConfigStore = Depends(get_exam_config_store)):
    await store.clear()
    return {"deleted": True}
