"""Submissions API — student uploads, remediation, listing and export.

Endpoints:
- ``POST   /api/submissions``             — grade a new submission
- ``POST   /api/submissions/remediation`` — grade remedial work
- ``GET    /api/submissions``             — list the pool (no page payloads)
- ``GET    /api/submissions/export``      — .xlsx download
- ``GET    /api/submissions/{id}``        — one submission in full
- ``DELETE /api/submissions``             — clear the pool
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from api.dependencies import get_exam_config_store, get_lifecycle_manager, get_store
from api.errors import raise_http_error
from errors import GradingPipelineError
from models.grading import GradingResult
from models.request import (
    RemediationRequest,
    SubmissionSummary,
    SubmitRequest,
    SubmitResponse,
)
from models.submission import Submission
from services.exam_store import ExamConfigStore
from services.export_service import XLSX_MIME_TYPE, export_submissions_xlsx
from services.grading_lifecycle import GradingLifecycleManager
from services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["submissions"])


@router.post("/submissions", response_model=SubmitResponse, response_model_by_alias=True)
async def submit(
    req: SubmitRequest,
    manager: GradingLifecycleManager = Depends(get_lifecycle_manager),
    exam_store: ExamConfigStore = Depends(get_exam_config_store),
):
    exam = await exam_store.get_current()
    try:
        submission = await manager.grade_submission(req.student, req.pages, exam)
    except GradingPipelineError as exc:
        logger.warning("Submission from %r rejected: %s", req.student.student_name, exc)
        raise_http_error(exc)
    return SubmitResponse(
        submission_id=submission.id,
        status=submission.status.value,
        result=submission.result,
    )


@router.post(
    "/submissions/remediation",
    response_model=GradingResult,
    response_model_by_alias=True,
)
async def submit_remediation(
    req: RemediationRequest,
    manager: GradingLifecycleManager = Depends(get_lifecycle_manager),
    store: SubmissionStore = Depends(get_store),
):
    """Grade remedial work against the practice problems of a prior result.

    The prior result comes from the request body, or from the stored
    submission named by ``submissionId``.
    """
    prior = req.prior_result
    if prior is None and req.submission_id:
        stored = await store.get(req.submission_id)
        if stored is None:
            raise HTTPException(status_code=404, detail="Submission not found")
        prior = stored.result
    try:
        return await manager.submit_remediation(
            prior, req.pages, req.student, submission_id=req.submission_id
        )
    except GradingPipelineError as exc:
        raise_http_error(exc)


@router.get("/submissions", response_model=list[SubmissionSummary], response_model_by_alias=True)
async def list_submissions(store: SubmissionStore = Depends(get_store)):
    return [SubmissionSummary.from_submission(s) for s in await store.get_all()]


@router.get("/submissions/export")
async def export_submissions(store: SubmissionStore = Depends(get_store)):
    submissions = await store.get_all()
    filename = f"grades_{time.strftime('%Y%m%d_%H%M%S')}.xlsx"
    return Response(
        content=export_submissions_xlsx(submissions),
        media_type=XLSX_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/submissions/{submission_id}",
    response_model=Submission,
    response_model_by_alias=True,
)
async def get_submission(submission_id: str, store: SubmissionStore = Depends(get_store)):
    submission = await store.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@router.delete("/submissions")
async def clear_submissions(store: SubmissionStore = Depends(get_store)):
    await store.clear_all()
    logger.info("Cleared all submissions")
    return {"deleted": True}
