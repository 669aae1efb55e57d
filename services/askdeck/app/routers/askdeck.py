"""AskDeck question answering router.

``POST /api/askdeck`` takes ``{message, context}``, composes the prompt,
asks the completion gateway and maps the outcome onto the HTTP response:

- gateway disabled -> 500 configuration error
- missing message/context -> 400
- Success -> 200 ``{reply}``
- Blocked / Malformed / TransportError -> 500 ``{error}``
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from shared.models import (
    AskDeckReply,
    AskDeckRequest,
    Blocked,
    CompletionOutcome,
    ErrorBody,
    Malformed,
    Success,
    TransportError,
    Unavailable,
)

from ..deps import get_gateway
from ..gateway import CompletionGateway
from ..prompts import compose_prompt

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_CONFIGURED = (
    "AI service is not configured correctly on the server. "
    "Check model ID and API key."
)
MISSING_FIELDS = "Message and context are required."
MALFORMED = "AI did not provide a valid response."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=ErrorBody(error=message).model_dump()
    )


async def _read_body(request: Request) -> AskDeckRequest:
    """Parse the JSON body; anything unusable counts as missing fields.

    Fields must be JSON strings. A truthy non-string such as
    ``{"message": 42}`` fails validation and is answered with the same 400
    as an absent field, rather than being coerced into the prompt.
    """
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return AskDeckRequest()
    if not isinstance(raw, dict):
        return AskDeckRequest()
    try:
        return AskDeckRequest.model_validate(raw)
    except ValidationError:
        return AskDeckRequest()


def outcome_to_response(outcome: CompletionOutcome) -> JSONResponse:
    if isinstance(outcome, Success):
        return JSONResponse(
            status_code=200, content=AskDeckReply(reply=outcome.text).model_dump()
        )
    if isinstance(outcome, Blocked):
        return _error(500, f"Response blocked: {outcome.reason}")
    if isinstance(outcome, Malformed):
        return _error(500, MALFORMED)
    if isinstance(outcome, TransportError):
        return _error(500, f"Failed to get response from AI: {outcome.message}")
    if isinstance(outcome, Unavailable):
        return _error(500, NOT_CONFIGURED)
    raise TypeError(f"Unhandled completion outcome: {outcome!r}")


@router.post(
    "/api/askdeck",
    response_model=AskDeckReply,
    responses={400: {"model": ErrorBody}, 500: {"model": ErrorBody}},
)
async def askdeck(
    request: Request, gateway: CompletionGateway = Depends(get_gateway)
) -> JSONResponse:
    """Answer one question about the supplied deck context."""
    if not gateway.enabled:
        logger.error(
            "/api/askdeck called, but AI model is not initialized (%s).",
            gateway.disabled_reason,
        )
        return _error(500, NOT_CONFIGURED)

    body = await _read_body(request)
    if not body.is_complete():
        return _error(400, MISSING_FIELDS)

    prompt = compose_prompt(body.context, body.message)
    outcome = await gateway.complete(prompt)
    return outcome_to_response(outcome)
