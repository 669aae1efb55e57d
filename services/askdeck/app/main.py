"""AskDeck API backend.

Relays a question plus deck context to Google Gemini and returns the answer.

Endpoints:
- POST `/api/askdeck`: answer a question grounded in the supplied context.
- GET `/api/health`: liveness only; always 200, independent of Gemini.
- GET `/` and `/health`: plain liveness checks.

Behavior:
- Settings and the completion gateway are built once in ``create_app``.
- A missing or rejected API key leaves the gateway disabled; the process
  keeps serving and `/api/askdeck` answers 500 until restarted with a key.

Run from the project root with ``askdeck-api`` or
``uvicorn services.askdeck.app.main:app``.
"""

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.log import configure_logging
from shared.models import HealthStatus
from shared.settings import Settings
from shared.tracing import configure_tracing, install_fastapi_tracing

from .gateway import CompletionGateway, build_gateway
from .routers import askdeck

logger = logging.getLogger(__name__)

HEALTH_MESSAGE = "AskDeck API backend is running."


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[CompletionGateway] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        gateway: Completion gateway to serve with. When omitted one is built
            from ``settings``; tests pass a stub here.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)
    configure_tracing(settings)
    if gateway is None:
        gateway = build_gateway(settings)

    app = FastAPI(title="AskDeck API", version="1.0.0")
    app.state.settings = settings
    app.state.gateway = gateway
    install_fastapi_tracing(app, service_name="askdeck")

    # ---------- Global safety net: never crash the worker ----------
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all for any unhandled exception; return structured JSON 500."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": f"An unexpected error occurred in askdeck: {exc}"},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def _root():
        return {"status": "ok", "service": "askdeck"}

    @app.get("/health")
    def _health():
        return {"status": "ok"}

    @app.get("/api/health", response_model=HealthStatus)
    def api_health() -> HealthStatus:
        return HealthStatus(status="ok", message=HEALTH_MESSAGE)

    app.include_router(askdeck.router, tags=["askdeck"])

    @app.on_event("startup")
    def _report_status() -> None:
        logger.info("AskDeck API backend is listening on port %s", settings.port)
        if not settings.google_api_key:
            logger.warning("WARNING: GOOGLE_API_KEY is missing.")
        elif not app.state.gateway.enabled:
            logger.warning(
                "WARNING: Google AI Model could not be initialized. "
                "Verify the model ID (%s) and API key permissions.",
                settings.gemini_model,
            )
        else:
            logger.info("Backend ready.")

    return app


app = create_app()


def run() -> None:
    """Console entrypoint: serve ``app`` on the configured host and port."""
    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
