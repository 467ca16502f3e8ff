"""Integrity scan API."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_integrity_scanner
from models.request import ScanReport
from services.integrity_scanner import IntegrityScanner

router = APIRouter(prefix="/api", tags=["integrity"])


@router.post("/integrity/scan", response_model=ScanReport, response_model_by_alias=True)
async def run_integrity_scan(scanner: IntegrityScanner = Depends(get_integrity_scanner)):
    """Recompute cross-submission copy flags over the whole pool."""
    return await scanner.scan()
