"""
FastAPI application exposing health and Telegram webhook endpoints.

This module initializes the FastAPI instance that receives webhook deliveries from
Telegram and hands each update to the workflow processor. Every webhook response is a
JSON object of the form {"ok": bool, "error"?: str}; Telegram redelivers updates
answered with a non-2xx status.
"""
import hmac
import logging
from typing import Dict, Optional
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from app.config import settings
from app.errors import (
    AuthenticationError,
    BridgeError,
    ConfigurationError,
    MalformedInputError,
    SchemaUnavailableError,
)
from app.processing.workflow_processor import WorkflowProcessor

logger = logging.getLogger(__name__)

TELEGRAM_SECRET_HEADER = "x-telegram-bot-api-secret-token"
_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

app = FastAPI()
update_processor: Optional[WorkflowProcessor] = None


def register_update_handler(processor: WorkflowProcessor) -> None:
    """
    Registers the processor used to ingest updates coming from the webhook.
    Args:
        processor: A configured workflow processor.
    """
    global update_processor
    update_processor = processor


def _get_processor() -> WorkflowProcessor:
    """Returns the registered processor, building one from settings on first use."""
    global update_processor
    if update_processor is None:
        update_processor = WorkflowProcessor(settings)
    return update_processor


def _json_response(status_code: int, error: Optional[str] = None) -> JSONResponse:
    content: Dict[str, object] = {"ok": error is None}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    """Renders application errors as {"ok": false, "error": ...} with their HTTP status."""
    return _json_response(exc.status_code, exc.message)


def is_authorized(secret_header: Optional[str], expected_secret: Optional[str]) -> bool:
    """
    Compares the delivered secret token with the expected one in constant time.
    Args:
        secret_header: Value of the X-Telegram-Bot-Api-Secret-Token header, if present.
        expected_secret: The configured secret, or None when enforcement is disabled.
    Returns:
        True if the request may be processed.
    """
    if expected_secret is None:
        return True
    if not secret_header:
        return False
    return hmac.compare_digest(secret_header.encode("utf-8"), expected_secret.encode("utf-8"))


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Returns a simple status payload for health monitoring.
    Returns:
        A dictionary containing the health status.
    """
    return {"status": "ok"}


@app.api_route(settings.WEBHOOK_PATH, methods=_ALL_METHODS)
async def telegram_webhook(request: Request) -> JSONResponse:
    """
    Receives webhook updates from Telegram and ingests them into Notion.
    Args:
        request: The incoming FastAPI request containing the Telegram payload.
    Returns:
        {"ok": true} when the update was ingested, skipped as a duplicate or ignored.
    Raises:
        BridgeError: Rendered by bridge_error_handler for configuration, authentication
        and payload problems.
    """
    if request.method != "POST":
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"ok": False, "error": "Not Found"})

    expected_secret = settings.require_webhook_secret()
    if not is_authorized(request.headers.get(TELEGRAM_SECRET_HEADER), expected_secret):
        logger.warning("Webhook rejected: missing or invalid X-Telegram-Bot-Api-Secret-Token header.")
        raise AuthenticationError("Unauthorized webhook request")

    try:
        settings.require_tokens()
    except ConfigurationError as error:
        logger.error(f"Webhook cannot be processed: {error}")
        return _json_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server misconfigured")

    try:
        payload = await request.json()
    except ValueError as error:
        logger.warning(f"Failed to parse webhook payload: {error}")
        raise MalformedInputError("Invalid JSON") from error

    processor = _get_processor()
    try:
        result = await processor.process_update(payload if isinstance(payload, dict) else {})
    except (MalformedInputError, ConfigurationError):
        raise
    except SchemaUnavailableError:
        return _json_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Cannot read Notion database schema")
    except Exception as error:
        return _json_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(error) or "Notion API error")
    logger.info(f"Webhook update {result.update_id} handled with status '{result.status}'.")
    return _json_response(status.HTTP_200_OK)
