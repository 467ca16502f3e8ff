"""FastAPI entry point for the submission grading service."""

import logging
from contextlib import asynccontextmanager

import litellm
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.exam import router as exam_router
from api.health import router as health_router
from api.integrity import router as integrity_router
from api.submissions import router as submissions_router
from config.settings import get_settings
from services.exam_store import RedisExamConfigStore, get_exam_store
from services.submission_store import RedisSubmissionStore, get_submission_store

logger = logging.getLogger(__name__)

# ── Global LiteLLM settings ──────────────────────────────────
litellm.drop_params = True  # ignore params a provider does not support

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the stores on startup and close Redis connections on shutdown."""
    store = get_submission_store()
    exam_store = get_exam_store()

    if isinstance(store, RedisSubmissionStore):
        if await store.ping():
            logger.info("Redis connection verified")
        else:
            logger.warning("Redis connection failed — submissions may not persist")

    yield

    if isinstance(store, RedisSubmissionStore):
        await store.close()
    if isinstance(exam_store, RedisExamConfigStore):
        await exam_store.close()


app = FastAPI(
    title="Submission Grading Service",
    description="Multimodal exam grading with cross-submission integrity checks",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(exam_router)
app.include_router(submissions_router)
app.include_router(integrity_router)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # The in-memory stores are process-local, so multiple workers need Redis.
    workers = 4 if settings.submission_store_type == "redis" and not settings.debug else 1
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        workers=workers,
        timeout_keep_alive=120,
    )
