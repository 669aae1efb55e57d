"""Dependency injection utilities for the AskDeck service.

The gateway is built once in ``create_app`` and stored on ``app.state``.
Route handlers receive it through ``Depends(get_gateway)`` so tests can
substitute a stub with ``create_app(gateway=...)`` or
``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Request

from .gateway import CompletionGateway


def get_gateway(request: Request) -> CompletionGateway:
    return request.app.state.gateway
