"""Tracing utilities with optional Langfuse integration.

By default spans are no-ops. When ``LANGFUSE_ENABLED=true`` and a public and
secret key are configured, one Langfuse trace is opened per HTTP request and
spans (for example around the Gemini call) are attached to it. Errors in
tracing never affect request handling; the tracer fails soft to a no-op.

This module also exposes ``log_event`` for short structured events and
``estimate_tokens`` for crude token counts in event payloads.
"""

from __future__ import annotations

import contextvars
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from langfuse import Langfuse

from shared.settings import Settings

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class _Span:
    """A no-op span used when tracing is disabled."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name

    def __enter__(self) -> "_Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


_current_trace = contextvars.ContextVar("askdeck.current_trace", default=None)


class Tracer:
    """Tracer facade: a Langfuse client when configured, otherwise no-op."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._client = None
        self._trace_name = "askdeck-trace"
        if settings is None:
            return
        self._trace_name = settings.trace_name
        if not settings.langfuse_enabled:
            return
        if not (settings.langfuse_public_key and settings.langfuse_secret_key):
            logger.warning("Langfuse enabled but keys are missing; tracing is off.")
            return
        try:
            self._client = Langfuse(
                public_key=settings.langfuse_public_key,
                secret_key=settings.langfuse_secret_key,
                host=settings.langfuse_host or None,
            )
        except Exception as e:
            logger.warning("Langfuse client could not be created: %s", e)
            self._client = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def start_trace(self, name: str, input: Optional[dict] = None):
        if self._client is None:
            return None
        try:
            tr = self._client.trace(name=name, input=input or {})
            _current_trace.set(tr)
            return tr
        except Exception:
            logger.debug("start_trace failed", exc_info=True)
            return None

    def end_trace(self, output: Optional[dict] = None) -> None:
        tr = _current_trace.get()
        if tr is not None:
            try:
                tr.update(output=output or {})
            except Exception:
                logger.debug("end_trace failed", exc_info=True)
        _current_trace.set(None)

    def start_span(self, name: str, **kwargs: Any) -> _Span:
        if self._client is None:
            return _Span(name, **kwargs)
        return _LangfuseSpan(
            self._client,
            name,
            parent_trace=_current_trace.get(),
            trace_name=self._trace_name,
            **kwargs,
        )


tracer = Tracer()


def configure_tracing(settings: Settings) -> Tracer:
    """Replace the module tracer with one built from ``settings``."""
    global tracer
    tracer = Tracer(settings)
    return tracer


def install_fastapi_tracing(app, service_name: str = "askdeck") -> None:
    """Install middleware to open a Langfuse trace per HTTP request."""
    from fastapi import Request

    @app.middleware("http")
    async def _trace_middleware(request: Request, call_next: Callable):
        if not tracer.enabled:
            return await call_next(request)
        # Only method and path; bodies carry user content
        tracer.start_trace(
            name=f"{service_name} {request.method} {request.url.path}",
            input={"method": request.method, "path": request.url.path},
        )
        status = None
        try:
            with span("http.request"):
                response = await call_next(request)
            status = response.status_code
            return response
        except Exception as e:
            with span("http.error", error=str(e)):
                pass
            raise
        finally:
            tracer.end_trace(output={"status": status})


@contextmanager
def span(name: str, **kwargs: Any) -> Iterator[_Span]:
    """Context manager wrapper around the tracer's start_span method.

    Usage:
        with span("llm.askdeck.call", model="gemini-2.0-flash"):
            ...
    """
    s = tracer.start_span(name, **kwargs)
    s.__enter__()
    try:
        yield s
    except BaseException as e:
        s.__exit__(type(e), e, e.__traceback__)
        raise
    else:
        s.__exit__(None, None, None)


class _LangfuseSpan(_Span):
    def __init__(
        self,
        client: Any,
        name: str,
        parent_trace: Any | None = None,
        trace_name: str = "askdeck-trace",
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self._client = client
        self._trace = parent_trace
        self._trace_name = trace_name
        self._span = None
        self._start_ms = _now_ms()
        self._kwargs = kwargs

    def __enter__(self) -> "_LangfuseSpan":
        try:
            # Outside a request trace, open a lightweight one so the span still records
            if self._trace is None:
                self._trace = self._client.trace(name=self._trace_name)
            self._span = self._trace.span(name=self.name, input=self._kwargs)
        except Exception:
            logger.debug("span %s could not be opened", self.name, exc_info=True)
            self._trace = None
            self._span = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._span is None:
            return None
        try:
            self._span.end(
                output={
                    "error": str(exc) if exc else None,
                    "duration_ms": max(1, _now_ms() - self._start_ms),
                }
            )
        except Exception:
            logger.debug("span %s could not be closed", self.name, exc_info=True)
        return None


def log_event(name: str, payload: Optional[dict] = None) -> None:
    """Emit a short-lived structured event span for observability.

    Args:
        name: Logical event name, e.g. "Generation".
        payload: Arbitrary JSON-serializable dict with event data.
    """
    with span(f"event.{name}", **dict(payload or {})):
        pass


def estimate_tokens(text: str) -> int:
    """Very rough subword token estimate (for logging only)."""
    if not text:
        return 0
    # Approximate: 1 token ~= 4 chars for English-like text
    return max(1, int(len(text) / 4))
