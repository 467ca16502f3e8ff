"""Reusable LLM generation parameters for evaluation calls.

LLMConfig is a standalone Pydantic model that can be:
- built from Settings as the grading default,
- overridden per call (e.g. a cheaper model for remediation rounds).

Priority chain (low → high):
    .env global defaults  →  per-call overrides
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM generation parameters.

    All fields are optional.  ``None`` means "use the model's default".
    """

    model: str | None = Field(default=None, description="LiteLLM model identifier")
    max_tokens: int | None = Field(default=None, description="Max tokens to generate")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    seed: int | None = Field(default=None, description="Random seed for reproducibility")
    response_format: str | None = Field(
        default=None, description="'json_object' for structured output"
    )

    def merge(self, overrides: LLMConfig) -> LLMConfig:
        """Return a new LLMConfig: *self* as base, *overrides* wins on non-None fields."""
        base = self.model_dump(exclude_none=True)
        over = overrides.model_dump(exclude_none=True)
        base.update(over)
        return LLMConfig(**base)

    def to_litellm_kwargs(self) -> dict:
        """Convert to ``litellm.acompletion()``-compatible keyword arguments.

        ``model`` is not included; callers pass it explicitly.
        """
        kw: dict = {}
        for field in ("max_tokens", "temperature", "top_p", "seed"):
            val = getattr(self, field)
            if val is not None:
                kw[field] = val
        if self.response_format:
            kw["response_format"] = {"type": self.response_format}
        return kw
