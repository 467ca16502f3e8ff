"""Evaluation gateway — the single boundary to the external LLM judge.

Builds one multimodal request per grading (or remediation) call, sends it
through LiteLLM, and validates the reply into a :class:`GradingResult`.

Every asset is preceded by a text part naming its role (general key,
per-question key, reference, student work), and student pages keep their
submission order.

Failure policy:
- missing / rejected credentials → :class:`ConfigurationError`, never retried
- transport failures and timeouts → retried at most
  ``evaluation_max_retries`` times, then :class:`EvaluationError`
- empty or malformed replies → :class:`EvaluationResponseError`, never retried

The gateway is stateless and never touches the submission store.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field

import litellm
from pydantic import ValidationError

from config.llm_config import LLMConfig
from config.prompts.grading import (
    GENERAL_KEY_LABEL,
    QUESTION_KEY_LABEL,
    REFERENCE_LABEL,
    REMEDIAL_WORK_LABEL,
    STUDENT_PAGE_LABEL,
    STUDENT_WORK_LABEL,
    build_grading_prompt,
    build_remediation_prompt,
)
from config.settings import Settings, get_settings
from errors import (
    ConfigurationError,
    EvaluationError,
    EvaluationResponseError,
    SubmissionValidationError,
)
from models.exam import AssetRole, ExamConfiguration, SubmissionAsset
from models.grading import MAX_PRACTICE_PROBLEMS, GradingResult, PracticeProblem

logger = logging.getLogger(__name__)

REQUIRED_RESPONSE_FIELDS = (
    "totalScore",
    "maxTotalScore",
    "summary",
    "letterGrade",
    "corrections",
    "studentHandwritingTranscription",
    "integrityAnalysis",
)

# Set only by the integrity scanner; dropped if the judge volunteers them
_SCANNER_OWNED_FIELDS = (
    "plagiarismDetected",
    "matchedStudentName",
    "matchedSubmissionId",
    "escalatedFrom",
    "scannerCreated",
)

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    litellm.APIConnectionError,
    litellm.Timeout,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


# ── Request inputs ───────────────────────────────────────────


@dataclass
class TaggedAsset:
    """An asset plus the role it plays in the evaluation request."""

    role: AssetRole
    asset: SubmissionAsset
    label: str = ""  # question label for QUESTION_KEY assets


@dataclass
class EvaluationMaterials:
    """Answer keys and reference material for one exam."""

    general_key: SubmissionAsset | None = None
    question_keys: list[tuple[str, SubmissionAsset]] = field(default_factory=list)
    reference: SubmissionAsset | None = None

    @classmethod
    def from_exam(cls, exam: ExamConfiguration) -> EvaluationMaterials:
        return cls(
            general_key=exam.general_answer_key,
            question_keys=[
                (q.label, q.answer_key) for q in exam.questions if q.answer_key is not None
            ],
            reference=exam.reference_file,
        )

    def tagged(self) -> list[TaggedAsset]:
        """Materials in request order: general key, question keys, reference."""
        items: list[TaggedAsset] = []
        if self.general_key is not None:
            items.append(TaggedAsset(AssetRole.GENERAL_KEY, self.general_key))
        for label, asset in self.question_keys:
            items.append(TaggedAsset(AssetRole.QUESTION_KEY, asset, label=label))
        if self.reference is not None:
            items.append(TaggedAsset(AssetRole.REFERENCE, self.reference))
        return items


@dataclass
class EvaluationContext:
    """Free-text grading instructions and the student/class identifier."""

    instructions: str = ""
    student_context: str = ""


# ── Message building ─────────────────────────────────────────


def _text_part(text: str) -> dict:
    return {"type": "text", "text": text}


def _asset_part(asset: SubmissionAsset) -> dict:
    if asset.is_image:
        return {"type": "image_url", "image_url": {"url": asset.to_data_uri()}}
    return {"type": "file", "file": {"file_data": asset.to_data_uri()}}


def _role_label(item: TaggedAsset) -> str:
    if item.role is AssetRole.GENERAL_KEY:
        return GENERAL_KEY_LABEL
    if item.role is AssetRole.QUESTION_KEY:
        return QUESTION_KEY_LABEL.format(label=item.label)
    if item.role is AssetRole.REFERENCE:
        return REFERENCE_LABEL
    return STUDENT_WORK_LABEL


def _student_page_parts(pages: list[SubmissionAsset], heading: str) -> list[dict]:
    parts = [_text_part(heading)]
    for index, page in enumerate(pages, 1):
        parts.append(_text_part(STUDENT_PAGE_LABEL.format(index=index)))
        parts.append(_asset_part(page))
    return parts


def build_grading_messages(
    materials: EvaluationMaterials,
    pages: list[SubmissionAsset],
    context: EvaluationContext,
) -> list[dict]:
    """Assemble the user message for an exam grading call."""
    parts = [_text_part(build_grading_prompt(context.instructions, context.student_context))]
    for item in materials.tagged():
        parts.append(_text_part(_role_label(item)))
        parts.append(_asset_part(item.asset))
    parts.extend(_student_page_parts(pages, STUDENT_WORK_LABEL))
    return [{"role": "user", "content": parts}]


def build_remediation_messages(
    practice_problems: list[PracticeProblem],
    pages: list[SubmissionAsset],
    context: EvaluationContext,
) -> list[dict]:
    """Assemble the user message for a remedial practice grading call."""
    prompt = build_remediation_prompt(
        [(p.id, p.content) for p in practice_problems], context.student_context
    )
    parts = [_text_part(prompt)]
    parts.extend(_student_page_parts(pages, REMEDIAL_WORK_LABEL))
    return [{"role": "user", "content": parts}]


# ── Response parsing ─────────────────────────────────────────

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)

# LaTeX commands starting with \n that a judge may emit; a bare \n before
# ordinary text is a real newline and is left alone.
_LATEX_N_COMMANDS = (
    "nabla", "neg", "neq", "newline", "nexists", "ngeq", "ni", "nleq",
    "nmid", "not", "notin", "nsubseteq", "nu",
)
_LATEX_CONTROL_RE = re.compile(
    r"\\(?:[bfrt][a-zA-Z]{2,}|(?:" + "|".join(_LATEX_N_COMMANDS) + r")(?![a-zA-Z]))"
)
_ESCAPED_BACKSLASH = "\x00\x01"


def _escape_latex_commands(s: str) -> str:
    r"""Double the backslash of LaTeX commands that look like JSON escapes.

    ``\frac``, ``\times``, ``\begin``, ``\right`` and ``\neq`` are valid JSON
    (form feed, tab, backspace, carriage return, newline) and would parse
    into control characters.
    """
    s = s.replace("\\\\", _ESCAPED_BACKSLASH)
    s = _LATEX_CONTROL_RE.sub(lambda m: "\\" + m.group(0), s)
    return s.replace(_ESCAPED_BACKSLASH, "\\\\")


def _fix_invalid_json_escapes(s: str) -> str:
    r"""Double lone backslashes that are not valid JSON escapes.

    Judges write LaTeX inside JSON strings (``\sqrt``, ``\(``, ``\underline``).
    ``\u`` only counts as an escape when four hex digits follow.
    """
    s = s.replace("\\\\", _ESCAPED_BACKSLASH)
    s = re.sub(r'\\(?!["\\/bfnrt]|u[0-9a-fA-F]{4})', r"\\\\", s)
    s = s.replace(_ESCAPED_BACKSLASH, "\\\\")
    return _escape_latex_commands(s)


def _loads_lenient(text: str) -> object:
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    text = _escape_latex_commands(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_fix_invalid_json_escapes(text))
    except json.JSONDecodeError as exc:
        raise EvaluationResponseError(
            f"Evaluation response is not valid JSON: {exc}", raw=text
        ) from exc


def parse_grading_response(text: str | None) -> GradingResult:
    """Validate the judge's raw reply into a :class:`GradingResult`.

    Raises:
        EvaluationResponseError: empty reply, non-JSON, a missing required
            field, or a value violating the result invariants.
    """
    if not text or not text.strip():
        raise EvaluationResponseError("Empty response from evaluation service")

    data = _loads_lenient(text)
    if not isinstance(data, dict):
        raise EvaluationResponseError(
            f"Evaluation response must be a JSON object, got {type(data).__name__}",
            raw=text,
        )

    missing = [f for f in REQUIRED_RESPONSE_FIELDS if data.get(f) is None]
    if missing:
        raise EvaluationResponseError(
            f"Evaluation response is missing required fields: {', '.join(missing)}",
            raw=text,
        )

    integrity = data.get("integrityAnalysis")
    if isinstance(integrity, dict):
        for key in _SCANNER_OWNED_FIELDS:
            integrity.pop(key, None)

    problems = data.get("practiceProblems")
    if problems is None:
        data.pop("practiceProblems", None)
    elif isinstance(problems, list) and len(problems) > MAX_PRACTICE_PROBLEMS:
        logger.warning(
            "Judge returned %d practice problems; keeping the first %d",
            len(problems), MAX_PRACTICE_PROBLEMS,
        )
        data["practiceProblems"] = problems[:MAX_PRACTICE_PROBLEMS]

    try:
        return GradingResult.model_validate(data)
    except ValidationError as exc:
        raise EvaluationResponseError(
            f"Evaluation response does not match the grading schema: {exc}", raw=text
        ) from exc


def _extract_content(response) -> str | None:
    try:
        return response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError):
        return None


# ── Gateway ──────────────────────────────────────────────────


class EvaluationGateway:
    """Invokes the LLM judge and validates its structured reply.

    Accepts an optional :class:`LLMConfig` merged on top of the grading
    defaults from Settings.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        config: LLMConfig | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = self._settings.get_grading_llm_config()
        if config:
            self._config = self._config.merge(config)

    @property
    def model(self) -> str | None:
        return self._config.model

    async def evaluate(
        self,
        materials: EvaluationMaterials,
        submission_pages: list[SubmissionAsset],
        context: EvaluationContext,
    ) -> GradingResult:
        """Grade a student's pages against the exam materials."""
        messages = build_grading_messages(materials, submission_pages, context)
        text = await self._complete(messages, purpose="grading")
        return parse_grading_response(text)

    async def evaluate_remediation(
        self,
        practice_problems: list[PracticeProblem],
        submission_pages: list[SubmissionAsset],
        context: EvaluationContext,
    ) -> GradingResult:
        """Grade remedial work for previously generated practice problems."""
        if not practice_problems:
            raise SubmissionValidationError(
                "practiceProblems", "No practice problems to grade remedial work against"
            )
        messages = build_remediation_messages(practice_problems, submission_pages, context)
        text = await self._complete(messages, purpose="remediation")
        return parse_grading_response(text)

    # -- transport -----------------------------------------------------------

    def _resolve_api_key(self, model: str) -> str | None:
        """Return an explicit API key, ``None`` to let LiteLLM read the env.

        Raises :class:`ConfigurationError` when no credential exists at all.
        """
        key = self._settings.api_key_for(model)
        if key:
            return key
        env = litellm.validate_environment(model=model)
        if env.get("keys_in_environment"):
            return None
        missing = ", ".join(env.get("missing_keys") or []) or "API key"
        raise ConfigurationError(
            f"Evaluation service is not configured for model {model!r}: missing {missing}"
        )

    async def _complete(self, messages: list[dict], purpose: str) -> str | None:
        model = self._config.model
        if not model:
            raise ConfigurationError("No grading model configured")
        api_key = self._resolve_api_key(model)

        kwargs: dict = {
            "model": model,
            "messages": messages,
            **self._config.to_litellm_kwargs(),
        }
        if api_key:
            kwargs["api_key"] = api_key

        max_attempts = max(1, self._settings.evaluation_max_retries + 1)
        for attempt in range(1, max_attempts + 1):
            t0 = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    litellm.acompletion(**kwargs),
                    timeout=self._settings.evaluation_timeout,
                )
            except litellm.AuthenticationError as exc:
                raise ConfigurationError(
                    f"Evaluation service rejected credentials for {model!r}: {exc}"
                ) from exc
            except _TRANSIENT_ERRORS as exc:
                elapsed_ms = (time.monotonic() - t0) * 1000
                logger.warning(
                    "%s call to %s failed (%.0fms): %r [attempt %d/%d]",
                    purpose, model, elapsed_ms, exc, attempt, max_attempts,
                )
                if attempt < max_attempts:
                    await asyncio.sleep(self._settings.evaluation_retry_delay)
                    continue
                raise EvaluationError(
                    f"Evaluation service unavailable after {attempt} attempt(s): {exc!r}",
                    attempts=attempt,
                ) from exc
            except Exception as exc:
                logger.exception("%s call to %s failed", purpose, model)
                raise EvaluationError(
                    f"Evaluation call failed: {exc}", attempts=attempt
                ) from exc

            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.info("%s call to %s completed (%.0fms)", purpose, model, elapsed_ms)
            return _extract_content(response)
