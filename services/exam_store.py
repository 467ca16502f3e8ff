"""Exam configuration store — holds the single current exam.

The grading pipeline only reads the configuration; the teacher-facing API
writes it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from models.exam import ExamConfiguration

logger = logging.getLogger(__name__)


class ExamConfigStore(ABC):
    """Abstract exam configuration store."""

    @abstractmethod
    async def get_current(self) -> ExamConfiguration | None:
        ...

    @abstractmethod
    async def save(self, config: ExamConfiguration) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class InMemoryExamConfigStore(ExamConfigStore):
    def __init__(self) -> None:
        self._config: ExamConfiguration | None = None

    async def get_current(self) -> ExamConfiguration | None:
        return self._config.model_copy(deep=True) if self._config else None

    async def save(self, config: ExamConfiguration) -> None:
        self._config = config.model_copy(deep=True)

    async def clear(self) -> None:
        self._config = None


class RedisExamConfigStore(ExamConfigStore):
    """Redis-backed store; the configuration lives under a single key."""

    def __init__(self, redis_url: str, key: str = "autograde:exam_config"):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._key = key

    async def get_current(self) -> ExamConfiguration | None:
        data = await self._redis.get(self._key)
        if data is None:
            return None
        try:
            return ExamConfiguration.model_validate_json(data)
        except Exception:
            logger.warning("Failed to deserialize exam configuration at %s", self._key)
            return None

    async def save(self, config: ExamConfiguration) -> None:
        await self._redis.set(self._key, config.model_dump_json(by_alias=True))

    async def clear(self) -> None:
        await self._redis.delete(self._key)

    async def close(self) -> None:
        await self._redis.aclose()


_store: ExamConfigStore | None = None


def get_exam_store() -> ExamConfigStore:
    """Get the singleton exam configuration store."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.submission_store_type == "redis" and settings.redis_url:
            _store = RedisExamConfigStore(settings.redis_url, key=settings.exam_config_key)
            logger.info("Initialized RedisExamConfigStore (key=%s)", settings.exam_config_key)
        else:
            _store = InMemoryExamConfigStore()
            logger.info("Initialized InMemoryExamConfigStore")
    return _store
