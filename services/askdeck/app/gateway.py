"""Completion gateway around Google Gemini.

The gateway is built once at startup by ``build_gateway``. Without an API
key, or if the SDK refuses to construct a model, it is disabled and every
``complete`` call returns ``Unavailable`` without touching the network.

An enabled gateway sends each prompt as a single turn with no history,
awaits ``generate_content_async`` and normalizes the raw response into one
``CompletionOutcome``:

- a candidate with at least one content part -> ``Success`` (first part's text)
- a prompt-feedback block reason -> ``Blocked``
- anything else -> ``Malformed`` (logged with the raw response)
- the call raising -> ``TransportError``

There is a single attempt per prompt: no retries, no timeout beyond the
SDK's transport default, and no cancellation if the HTTP caller goes away.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from pydantic import BaseModel, ConfigDict

from shared.models import (
    Blocked,
    CompletionOutcome,
    Malformed,
    Success,
    TransportError,
    Unavailable,
)
from shared.settings import Settings
from shared.tracing import estimate_tokens, log_event, span

logger = logging.getLogger(__name__)


class GenerationSettings(BaseModel):
    """Sampling parameters sent with every prompt."""

    model_config = ConfigDict(frozen=True)

    temperature: float = 0.1
    top_p: float = 0.95
    top_k: int = 64
    max_output_tokens: int = 8192
    response_mime_type: str = "text/plain"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationSettings":
        return cls(
            temperature=settings.temperature,
            top_p=settings.top_p,
            top_k=settings.top_k,
            max_output_tokens=settings.max_output_tokens,
            response_mime_type=settings.response_mime_type,
        )

    def to_generation_config(self) -> genai.GenerationConfig:
        return genai.GenerationConfig(**self.model_dump())


SafetyPolicy = Tuple[Tuple[HarmCategory, HarmBlockThreshold], ...]

SAFETY_POLICY: SafetyPolicy = (
    (HarmCategory.HARM_CATEGORY_HARASSMENT, HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
    (HarmCategory.HARM_CATEGORY_HATE_SPEECH, HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE),
    (
        HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    ),
    (
        HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    ),
)


def safety_settings(policy: SafetyPolicy = SAFETY_POLICY) -> list[dict]:
    """Render the policy in the shape ``GenerativeModel`` accepts."""
    return [{"category": c, "threshold": t} for c, t in policy]


def _reason_name(reason: Any) -> str:
    # Proto enums expose .name (e.g. "SAFETY"); fakes may pass plain strings
    return getattr(reason, "name", None) or str(reason)


def _block_reason(response: Any) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback is not None else None
    if not reason:
        return None
    return _reason_name(reason)


def _first_part_text(candidate: Any) -> Optional[str]:
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) if content is not None else None
    if not parts:
        return None
    return getattr(parts[0], "text", "") or ""


def normalize_response(response: Any) -> CompletionOutcome:
    """Map a Gemini ``GenerateContentResponse`` onto a ``CompletionOutcome``.

    An empty candidate list and a candidate without parts are not
    distinguished; both end up as ``Malformed`` unless the prompt feedback
    carries an explicit block reason.
    """
    candidates = getattr(response, "candidates", None) or []
    if candidates:
        text = _first_part_text(candidates[0])
        if text is not None:
            return Success(text=text)

    reason = _block_reason(response)
    if reason:
        logger.warning(
            "AI response blocked. Reason: %s (%r)",
            reason,
            getattr(response, "prompt_feedback", None),
        )
        return Blocked(reason=reason)

    logger.error("No valid candidate response from AI: %r", response)
    return Malformed(raw_response=response)


class CompletionGateway:
    """Owns the Gemini model handle; immutable after construction."""

    def __init__(
        self,
        model: Any = None,
        model_name: str = "",
        disabled_reason: Optional[str] = None,
    ) -> None:
        self._model = model
        self._model_name = model_name
        self._disabled_reason = disabled_reason if model is None else None
        if model is None and not self._disabled_reason:
            self._disabled_reason = "AI model is not initialized."

    @classmethod
    def disabled(cls, reason: str, model_name: str = "") -> "CompletionGateway":
        return cls(model=None, model_name=model_name, disabled_reason=reason)

    @property
    def enabled(self) -> bool:
        return self._model is not None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def disabled_reason(self) -> Optional[str]:
        return self._disabled_reason

    async def complete(self, prompt: str) -> CompletionOutcome:
        if self._model is None:
            return Unavailable(reason=self._disabled_reason or "")

        # One request with the prompt as the only turn; the raw response is
        # normalized here rather than by ChatSession, which raises on it
        try:
            with span(
                "llm.askdeck.call",
                model=self._model_name,
                prompt_tokens=estimate_tokens(prompt),
            ):
                response = await self._model.generate_content_async(prompt)
        except Exception as e:
            logger.exception("Error calling Gemini (%s): %s", self._model_name, e)
            outcome = TransportError(message=str(e))
        else:
            outcome = normalize_response(response)

        log_event(
            "Generation",
            payload={
                "model": self._model_name,
                "prompt_tokens": estimate_tokens(prompt),
                "output_tokens": estimate_tokens(
                    outcome.text if isinstance(outcome, Success) else ""
                ),
                "outcome": outcome.kind,
            },
        )
        return outcome


def build_gateway(settings: Settings) -> CompletionGateway:
    """Create the process-wide gateway from ``settings``.

    Never raises: configuration problems are logged once and produce a
    disabled gateway so the health endpoints keep serving.
    """
    model_name = settings.gemini_model
    if not settings.google_api_key:
        logger.error(
            "CRITICAL ERROR: GOOGLE_API_KEY is not set in environment. "
            "AI features will not work."
        )
        return CompletionGateway.disabled(
            "GOOGLE_API_KEY is not set.", model_name=model_name
        )

    try:
        genai.configure(api_key=settings.google_api_key)
        model = genai.GenerativeModel(
            model_name,
            generation_config=GenerationSettings.from_settings(
                settings
            ).to_generation_config(),
            safety_settings=safety_settings(),
        )
    except Exception as e:
        logger.error("Error initializing Google AI SDK: %s", e)
        return CompletionGateway.disabled(
            f"Model initialization failed: {e}", model_name=model_name
        )

    logger.info("Google AI SDK initialized successfully (model %s).", model_name)
    return CompletionGateway(model=model, model_name=model_name)
