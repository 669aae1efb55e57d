"""Pydantic data models for the AskDeck service.

These models define the HTTP request/response bodies and the outcome of a
single completion attempt against Gemini. By centralising them in a shared
module the router, the gateway and the tests agree on the shape of the data
they exchange.

Completion outcomes are frozen models tagged by ``kind`` so that the
request handler can map them exhaustively onto HTTP responses.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AskDeckRequest(BaseModel):
    """Request body for ``POST /api/askdeck``.

    Attributes:
        message: The user's question.
        context: Free-form context the answer should be grounded in
            (typically the text of the deck being studied).

    Both fields are optional at the schema level; presence is checked by the
    router so that a missing field maps to a 400 with a fixed error body.
    """

    message: Optional[str] = None
    context: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.message) and bool(self.context)


class AskDeckReply(BaseModel):
    """Successful answer relayed from the model."""

    reply: str


class ErrorBody(BaseModel):
    error: str


class HealthStatus(BaseModel):
    status: str = "ok"
    message: str


class _Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)


class Success(_Outcome):
    """The model returned at least one candidate with content parts."""

    kind: Literal["success"] = "success"
    text: str


class Blocked(_Outcome):
    """Gemini withheld output because of its content-safety policy."""

    kind: Literal["blocked"] = "blocked"
    reason: str


class Malformed(_Outcome):
    """No usable candidate and no explicit block reason.

    ``raw_response`` keeps whatever the SDK handed back for diagnosis.
    """

    kind: Literal["malformed"] = "malformed"
    raw_response: Any = None


class TransportError(_Outcome):
    """The call to Gemini raised (network failure, quota, 5xx, ...)."""

    kind: Literal["transport_error"] = "transport_error"
    message: str


class Unavailable(_Outcome):
    """The gateway never became ready; Gemini was not contacted."""

    kind: Literal["unavailable"] = "unavailable"
    reason: str


CompletionOutcome = Annotated[
    Union[Success, Blocked, Malformed, TransportError, Unavailable],
    Field(discriminator="kind"),
]
