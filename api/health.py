"""Health check endpoint."""

from fastapi import APIRouter

from config.settings import get_settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    settings = get_settings()
    return {
        "status": "healthy",
        "gradingModel": settings.grading_model,
        "store": settings.submission_store_type,
    }
