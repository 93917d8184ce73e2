"""
Main entrypoint: FlutterAI API server, optionally with the queue runner.

The queue runner starts inside the FastAPI lifespan when FLUTTERAI_QUEUE_WORKER=1;
otherwise the queue is drained on demand via POST /api/flutterai/process-queue.

Env: FLUTTERAI_DB_URL or FLUTTERAI_DB_PATH, FLUTTERAI_LLM_API_KEY, API_HOST, API_PORT, LOG_LEVEL, etc.

API only: uvicorn backend_flutterai.api_server.app:app --host 0.0.0.0 --port 8000
"""

from backend_flutterai.config import get_settings
from backend_flutterai.config.env import mask_database_url
from backend_flutterai.flutterai_logging import configure_structlog, get_logger

logger = get_logger("main")


def main() -> None:
    """Build the app from env settings and serve it in the main thread."""
    settings = get_settings()
    configure_structlog(settings.log_level, settings.log_format)

    from backend_flutterai.api_server.server import create_app
    import uvicorn

    if not settings.llm_api_key:
        logger.warning("main_llm_key_missing", message="AI interpretation will use fallback labels")
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        database=mask_database_url(settings.database_url),
        queue_worker=settings.queue_worker_enabled,
    )
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
