"""
FastAPI server for FlutterAI wallet intelligence.

create_app() builds the app around an injected (or settings-built) service
container. The lifespan creates tables and, when enabled, starts the periodic
queue runner in a background thread. Errors are returned as
{"success": false, "error": message}.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend_flutterai import __version__
from backend_flutterai.agent_worker.runner import (
    SHUTDOWN_JOIN_TIMEOUT_SEC,
    QueueRunnerConfig,
    run_periodic_queue_worker,
)
from backend_flutterai.api_server.intelligence_routes import router as intelligence_router
from backend_flutterai.api_server.services import ServiceContainer, build_services
from backend_flutterai.api_server.wallet_routes import router as wallet_router
from backend_flutterai.config.settings import Settings, get_settings
from backend_flutterai.core.exceptions import FlutterAIError
from backend_flutterai.flutterai_logging import get_logger

logger = get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form")]
    field = ".".join(loc)
    msg = first.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables; start the queue runner thread when enabled; stop it on shutdown."""
    services: ServiceContainer = app.state.services
    services.store.init_db()

    stop_event = threading.Event()
    thread: threading.Thread | None = None
    if services.settings.queue_worker_enabled:
        config = QueueRunnerConfig(
            interval_sec=services.settings.queue_interval_sec,
            batch_size=services.settings.queue_batch_size,
        )
        thread = threading.Thread(
            target=run_periodic_queue_worker,
            args=(config, services.processor, stop_event),
            name="queue-runner",
            daemon=True,
        )
        thread.start()
        logger.info("api_queue_runner_started", interval_sec=config.interval_sec)
    try:
        yield
    finally:
        stop_event.set()
        if thread is not None:
            thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                logger.warning("api_queue_runner_join_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
            else:
                logger.info("api_queue_runner_stopped")
        if services.owns_store:
            services.store.dispose()


def create_app(settings: Settings | None = None, services: ServiceContainer | None = None) -> FastAPI:
    if services is None:
        services = build_services(settings or get_settings())

    app = FastAPI(
        title="FlutterAI Wallet Intelligence API",
        description="Wallet collection, analysis queue and social credit scoring.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.exception_handler(FlutterAIError)
    def flutterai_error_handler(request: Request, exc: FlutterAIError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "api_request_failed",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=exc.message,
            )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Consistent JSON error response for HTTPException."""
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, _validation_message(exc))

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "service": "flutterai", "version": __version__}

    app.include_router(wallet_router)
    app.include_router(intelligence_router)
    return app

