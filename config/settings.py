"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import LLMConfig

# LiteLLM model prefix → settings attribute holding that provider's key
_PROVIDER_KEY_FIELDS: dict[str, str] = {
    "gemini": "gemini_api_key",
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
    "dashscope": "dashscope_api_key",
}


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Evaluation service (LLM judge) ───────────────────────
    grading_model: str = "gemini/gemini-2.5-pro"  # Must be vision-capable
    grading_temperature: float = 0.2
    grading_max_tokens: int = 8192
    evaluation_timeout: float = 180.0  # seconds, per attempt
    evaluation_max_retries: int = 1  # transport failures only
    evaluation_retry_delay: float = 2.0  # seconds between attempts

    # Provider API keys (LiteLLM falls back to its own env lookup when empty)
    gemini_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    dashscope_api_key: str = ""

    # ── Integrity scan ───────────────────────────────────────
    similarity_threshold: float = 0.85  # flag when Jaccard > threshold
    min_comparable_length: int = 20  # both texts must be longer than this

    # ── Lifecycle ────────────────────────────────────────────
    record_failed_submissions: bool = False  # keep ERROR records for audit
    persist_remediation: bool = False  # overwrite stored result after remediation

    # ── Storage ──────────────────────────────────────────────
    submission_store_type: str = "memory"  # "memory" or "redis"
    redis_url: str = ""  # e.g. redis://:password@host:6379/0
    submissions_key: str = "autograde:submissions"
    exam_config_key: str = "autograde:exam_config"

    # ── Helpers ───────────────────────────────────────────────

    def get_grading_llm_config(self) -> LLMConfig:
        """Build an :class:`LLMConfig` for evaluation calls from .env defaults."""
        return LLMConfig(
            model=self.grading_model,
            max_tokens=self.grading_max_tokens,
            temperature=self.grading_temperature,
            response_format="json_object",
        )

    def api_key_for(self, model: str) -> str:
        """Return the configured API key for a LiteLLM model id, or ``""``."""
        provider = model.split("/", 1)[0] if "/" in model else ""
        field = _PROVIDER_KEY_FIELDS.get(provider)
        return getattr(self, field) if field else ""


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
