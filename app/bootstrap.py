"""
Bootstrapper for the webhook and polling runtimes.

In webhook mode the application optionally drains the pending backlog via polling,
registers the webhook with Telegram when a public URL is configured and then serves the
FastAPI app through uvicorn. In polling mode it removes any webhook and runs a single
getUpdates pass, which is meant to be triggered by an external scheduler.
"""
import asyncio
import logging
import uvicorn
from app.config import settings
from app.processing.workflow_processor import WorkflowProcessor
from app.webhook_api import app as fastapi_app, register_update_handler

logger = logging.getLogger(__name__)

async def _run_uvicorn_server() -> None:
    """Serves the FastAPI webhook application until uvicorn shuts down."""
    server = uvicorn.Server(
        uvicorn.Config(
            fastapi_app,
            host=settings.WEBHOOK_HOST,
            port=settings.WEBHOOK_PORT,
            log_level=settings.LOG_LEVEL.strip().lower(),
        )
    )
    logger.info(
        f"Serving webhook at {settings.WEBHOOK_PATH} on {settings.WEBHOOK_HOST}:{settings.WEBHOOK_PORT}."
    )
    await server.serve()

async def drain_backlog(processor: WorkflowProcessor, max_passes: int) -> int:
    """
    Ingests updates that queued up while no webhook was registered.
    Stops at the first pass that fetches nothing or makes no progress.
    Args:
        processor: The workflow processor responsible for handling updates.
        max_passes: Upper bound on getUpdates passes.
    Returns:
        The number of pages created across all passes.
    """
    created = 0
    for current_pass in range(1, max_passes + 1):
        result = await processor.run()
        created += result.created
        if not result.fetched or result.last_offset is None:
            logger.info(f"Backlog drained after {current_pass} pass(es); {created} page(s) created.")
            return created
    logger.warning(f"Backlog not drained after {max_passes} pass(es); the webhook will receive the rest.")
    return created

async def _prepare_webhook_mode(processor: WorkflowProcessor) -> None:
    """
    Performs the polling catch-up and registers the webhook with Telegram.
    Args:
        processor: Workflow processor that handles updates.
    Raises:
        RuntimeError: If setting the webhook fails.
    """
    if not settings.WEBHOOK_URL:
        logger.info("WEBHOOK_URL not set; assuming the webhook is registered externally.")
        return
    if settings.STARTUP_POLLING_MAX_RUNS > 0:
        # getUpdates is refused by Telegram while a webhook is set.
        await processor.telegram.delete_webhook()
        await drain_backlog(processor, settings.STARTUP_POLLING_MAX_RUNS)
    logger.info(f"Configuring webhook with target URL {settings.WEBHOOK_URL}.")
    success = await processor.telegram.set_webhook(
        settings.WEBHOOK_URL,
        secret_token=settings.TELEGRAM_WEBHOOK_SECRET_TOKEN or None,
    )
    if not success:
        raise RuntimeError("Failed to set webhook with Telegram.")
    logger.info(f"Webhook mode ready at {settings.WEBHOOK_URL}")

async def start_runtime() -> None:
    """
    Entry point that wires services and starts the configured runtime.
    Raises:
        ConfigurationError: If required tokens are missing.
        RuntimeError: Propagates critical failures during startup.
    """
    processor = WorkflowProcessor(settings)
    if settings.RUN_MODE == "polling":
        logger.info("Polling mode selected. Running a single polling pass.")
        await processor.telegram.delete_webhook()
        result = await processor.run()
        logger.info(f"Polling pass created {result.created} page(s); next offset {result.last_offset}.")
        return
    settings.require_webhook_secret()
    register_update_handler(processor)
    await _prepare_webhook_mode(processor)
    await _run_uvicorn_server()

def run() -> None:
    """Runs the configured runtime inside a new asyncio event loop."""
    try:
        asyncio.run(start_runtime())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
