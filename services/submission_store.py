"""Submission store — durable keyed collection of submissions.

Provides an abstract interface with in-memory and Redis implementations.
Read-modify-write semantics with no locking: a single operator edits one
submission pool at a time.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from models.submission import Submission

logger = logging.getLogger(__name__)


def _snapshot_order(submission: Submission) -> tuple[float, str]:
    return (submission.submission_time, submission.id)


# ── Abstract Interface ───────────────────────────────────────


class SubmissionStore(ABC):
    """Abstract submission store — implement for different backends."""

    @abstractmethod
    async def get_all(self) -> list[Submission]:
        """Return copies of every submission, oldest first."""
        ...

    @abstractmethod
    async def get(self, submission_id: str) -> Submission | None:
        """Retrieve a copy of one submission.  Returns None if absent."""
        ...

    @abstractmethod
    async def put(self, submission: Submission) -> None:
        """Persist a submission (insert or replace by id)."""
        ...

    @abstractmethod
    async def clear_all(self) -> None:
        """Remove every submission."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemorySubmissionStore(SubmissionStore):
    """Process-local store.  Returns deep copies so callers work on snapshots."""

    def __init__(self) -> None:
        self._store: dict[str, Submission] = {}

    async def get_all(self) -> list[Submission]:
        subs = sorted(self._store.values(), key=_snapshot_order)
        return [s.model_copy(deep=True) for s in subs]

    async def get(self, submission_id: str) -> Submission | None:
        sub = self._store.get(submission_id)
        return sub.model_copy(deep=True) if sub is not None else None

    async def put(self, submission: Submission) -> None:
        self._store[submission.id] = submission.model_copy(deep=True)

    async def clear_all(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)


# ── Redis Implementation ─────────────────────────────────────


class RedisSubmissionStore(SubmissionStore):
    """Redis-backed store; one hash field per submission, JSON-serialized."""

    def __init__(self, redis_url: str, key: str = "autograde:submissions"):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._key = key

    async def get_all(self) -> list[Submission]:
        raw = await self._redis.hgetall(self._key)
        subs: list[Submission] = []
        for submission_id, data in raw.items():
            sub = self._load(submission_id, data)
            if sub is not None:
                subs.append(sub)
        return sorted(subs, key=_snapshot_order)

    async def get(self, submission_id: str) -> Submission | None:
        data = await self._redis.hget(self._key, submission_id)
        if data is None:
            return None
        return self._load(submission_id, data)

    async def put(self, submission: Submission) -> None:
        await self._redis.hset(
            self._key, submission.id, submission.model_dump_json(by_alias=True)
        )

    async def clear_all(self) -> None:
        await self._redis.delete(self._key)

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._redis.aclose()

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            return await self._redis.ping()
        except Exception:
            return False

    @staticmethod
    def _load(submission_id: str, data: str) -> Submission | None:
        try:
            return Submission.model_validate_json(data)
        except Exception:
            logger.warning("Failed to deserialize submission: %s", submission_id)
            return None


# ── Module-level Singleton ───────────────────────────────────

_store: SubmissionStore | None = None


def get_submission_store() -> SubmissionStore:
    """Get the singleton submission store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.submission_store_type == "redis" and settings.redis_url:
            _store = RedisSubmissionStore(
                redis_url=settings.redis_url,
                key=settings.submissions_key,
            )
            logger.info("Initialized RedisSubmissionStore (key=%s)", settings.submissions_key)
        else:
            _store = InMemorySubmissionStore()
            logger.info("Initialized InMemorySubmissionStore")
    return _store
