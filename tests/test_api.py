"""FastAPI endpoint tests using httpx.AsyncClient."""

from __future__ import annotations

import io

import openpyxl
import pytest
from httpx import ASGITransport, AsyncClient

from api.dependencies import (
    get_exam_config_store,
    get_integrity_scanner,
    get_lifecycle_manager,
    get_store,
)
from errors import ConfigurationError, EvaluationError
from main import app
from services.grading_lifecycle import GradingLifecycleManager
from services.integrity_scanner import IntegrityScanner

from conftest import PNG_B64

PAGE = {"data": PNG_B64, "mimeType": "image/png"}


@pytest.fixture
async def client(gateway, submission_store, exam_store, settings):
    app.dependency_overrides[get_store] = lambda: submission_store
    app.dependency_overrides[get_exam_config_store] = lambda: exam_store
    app.dependency_overrides[get_lifecycle_manager] = lambda: GradingLifecycleManager(
        gateway=gateway, store=submission_store, settings=settings
    )
    app.dependency_overrides[get_integrity_scanner] = lambda: IntegrityScanner(
        store=submission_store, settings=settings
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def configured(exam_store, exam):
    await exam_store.save(exam)
    return exam


def _submit_body(name="An", sid="10A1", pages=None):
    return {
        "student": {"studentName": name, "studentId": sid},
        "pages": [PAGE] if pages is None else pages,
    }


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


# ── Exam configuration ───────────────────────────────────────


@pytest.mark.asyncio
async def test_get_exam_not_configured(client):
    resp = await client.get("/api/exam")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_put_and_get_exam(client):
    body = {
        "id": "exam-1",
        "title": "Fractions quiz",
        "instructions": "Half marks for method.",
        "questions": [{"id": "q1", "label": "Question 1", "answerKey": PAGE}],
    }
    resp = await client.put("/api/exam", json=body)
    assert resp.status_code == 200

    resp = await client.get("/api/exam")
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Fractions quiz"
    assert data["questions"][0]["answerKey"]["mimeType"] == "image/png"


@pytest.mark.asyncio
async def test_put_exam_without_answer_key(client):
    body = {"id": "exam-1", "title": "t", "questions": [{"id": "q1", "label": "Question 1"}]}
    resp = await client.put("/api/exam", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "answerKey"


@pytest.mark.asyncio
async def test_delete_exam(client, configured):
    resp = await client.delete("/api/exam")
    assert resp.status_code == 200
    assert (await client.get("/api/exam")).status_code == 404


# ── Submissions ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_submit_graded(client, configured):
    resp = await client.post("/api/submissions", json=_submit_body())
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "GRADED"
    assert data["submissionId"].startswith("sub-")
    assert len(data["result"]["corrections"]) > 0
    assert data["result"]["totalScore"] == 8


@pytest.mark.asyncio
async def test_submit_empty_name_rejected(client, configured, gateway):
    resp = await client.post("/api/submissions", json=_submit_body(name=""))
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "studentName"
    gateway.evaluate.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_without_exam(client, gateway):
    resp = await client.post("/api/submissions", json=_submit_body())
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "exam"


@pytest.mark.asyncio
async def test_submit_invalid_base64(client, configured):
    resp = await client.post(
        "/api/submissions", json=_submit_body(pages=[{"data": "%%%", "mimeType": "image/png"}])
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_submit_evaluation_failure(client, configured, gateway, submission_store):
    gateway.evaluate.side_effect = EvaluationError("timed out", attempts=2)
    resp = await client.post("/api/submissions", json=_submit_body())
    assert resp.status_code == 502
    assert "try again" in resp.json()["detail"]["message"]
    assert submission_store.size == 0


@pytest.mark.asyncio
async def test_submit_not_configured(client, configured, gateway):
    gateway.evaluate.side_effect = ConfigurationError("missing GEMINI_API_KEY")
    resp = await client.post("/api/submissions", json=_submit_body())
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_list_and_get_submission(client, configured):
    created = (await client.post("/api/submissions", json=_submit_body())).json()

    resp = await client.get("/api/submissions")
    assert resp.status_code == 200
    [row] = resp.json()
    assert row["id"] == created["submissionId"]
    assert row["pageCount"] == 1
    assert "pages" not in row

    resp = await client.get(f"/api/submissions/{created['submissionId']}")
    assert resp.status_code == 200
    assert resp.json()["state"]["status"] == "GRADED"
    assert resp.json()["pages"][0]["data"] == PNG_B64


@pytest.mark.asyncio
async def test_get_submission_not_found(client):
    resp = await client.get("/api/submissions/sub-missing")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_clear_submissions(client, configured):
    await client.post("/api/submissions", json=_submit_body())
    resp = await client.delete("/api/submissions")
    assert resp.status_code == 200
    assert (await client.get("/api/submissions")).json() == []


# ── Remediation ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_remediation_with_prior_result(client, judge_payload):
    body = {
        "student": {"studentName": "An", "studentId": "10A1"},
        "priorResult": judge_payload(),
        "pages": [PAGE],
    }
    resp = await client.post("/api/submissions/remediation", json=body)
    assert resp.status_code == 200
    assert resp.json()["summary"] == "Remediation complete."


@pytest.mark.asyncio
async def test_remediation_loads_prior_from_store(client, configured, gateway):
    created = (await client.post("/api/submissions", json=_submit_body())).json()
    body = {
        "student": {"studentName": "An", "studentId": "10A1"},
        "submissionId": created["submissionId"],
        "pages": [PAGE],
    }
    resp = await client.post("/api/submissions/remediation", json=body)
    assert resp.status_code == 200
    gateway.evaluate_remediation.assert_awaited_once()


@pytest.mark.asyncio
async def test_remediation_without_practice_problems(client, gateway, judge_payload):
    body = {
        "student": {"studentName": "An", "studentId": "10A1"},
        "priorResult": judge_payload(practiceProblems=[]),
        "pages": [PAGE],
    }
    resp = await client.post("/api/submissions/remediation", json=body)
    assert resp.status_code == 400
    gateway.evaluate_remediation.assert_not_awaited()


@pytest.mark.asyncio
async def test_remediation_unknown_submission(client):
    body = {"student": {}, "submissionId": "sub-missing", "pages": [PAGE]}
    resp = await client.post("/api/submissions/remediation", json=body)
    assert resp.status_code == 404


# ── Integrity scan & export ──────────────────────────────────


@pytest.mark.asyncio
async def test_integrity_scan_flags_copies(client, submission_store, make_graded):
    copied = "the answer is forty two plus one"
    await submission_store.put(make_graded("Ann", copied))
    await submission_store.put(make_graded("Bob", copied))

    resp = await client.post("/api/integrity/scan")
    assert resp.status_code == 200
    assert resp.json()["flaggedPairs"] == 1
    assert resp.json()["scanned"] == 2

    rows = (await client.get("/api/submissions")).json()
    assert all(row["plagiarismDetected"] for row in rows)


@pytest.mark.asyncio
async def test_export_xlsx(client, submission_store, make_graded):
    await submission_store.put(make_graded("Ann", "text"))
    resp = await client.get("/api/submissions/export")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "attachment" in resp.headers["content-disposition"]
    wb = openpyxl.load_workbook(io.BytesIO(resp.content))
    assert len(wb.sheetnames) == 2
