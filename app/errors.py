"""
Error taxonomy for the Telegram-to-Notion bridge.

Errors raised before a page exists map to HTTP status codes and abort the request.
Errors raised while handling attachments are caught by the upload orchestrator and
recorded in the page's upload ledger instead.
"""
import logging
from typing import Any, Optional
from notion_client.errors import APIResponseError, RequestTimeoutError

logger = logging.getLogger(__name__)

_FAILURE_CLASS_BY_CODE = {
    "object_not_found": "object_not_found",
    "unauthorized": "unauthorized",
    "restricted_resource": "unauthorized",
    "rate_limited": "rate_limited",
    "validation_error": "validation_error",
    "conflict_error": "conflict_error",
    "request_timeout": "request_timeout",
    "notionhq_client_request_timeout": "request_timeout",
}


class BridgeError(Exception):
    """Base class for all errors raised by this application."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(BridgeError):
    """Required secrets or settings are missing."""


class AuthenticationError(BridgeError):
    """The webhook request did not carry the expected secret token."""

    status_code = 401


class MalformedInputError(BridgeError):
    """The inbound payload is not a usable Telegram update."""

    status_code = 400


class SchemaUnavailableError(BridgeError):
    """Notion returned no property map for the target database."""


class MetadataUnavailableError(BridgeError):
    """Telegram getFile did not return a downloadable file path."""


class FileDownloadError(BridgeError):
    """The Telegram file server answered with a non-success status."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Telegram file download failed: {status_code}")
        self.http_status = status_code


class NotionRequestError(BridgeError):
    """A raw HTTP call to the Notion API failed."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        path: Optional[str] = None,
        http_status: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.path = path
        self.http_status = http_status
        self.code = code


def _error_code(error: BaseException) -> Optional[str]:
    code = getattr(error, "code", None)
    if code is None:
        return None
    # notion-client exposes codes as a str-based enum.
    value = getattr(code, "value", code)
    return value if isinstance(value, str) else None


def classify_notion_failure(error: BaseException) -> str:
    """
    Maps an exception raised while talking to Notion onto a coarse failure class for triage.
    Args:
        error: The exception to classify.
    Returns:
        One of object_not_found, unauthorized, rate_limited, validation_error, conflict_error,
        request_timeout, schema_unavailable, api_response_error or unknown.
    """
    if isinstance(error, RequestTimeoutError):
        return "request_timeout"
    code = _error_code(error)
    if code in _FAILURE_CLASS_BY_CODE:
        return _FAILURE_CLASS_BY_CODE[code]
    if isinstance(error, SchemaUnavailableError) or "no properties" in str(error).lower():
        return "schema_unavailable"
    if code or isinstance(error, APIResponseError):
        return "api_response_error"
    return "unknown"


def log_notion_failure(event: str, error: BaseException, **context: Any) -> None:
    """
    Logs a Notion failure together with its classified failure reason.
    Args:
        event: Short description of the failed operation.
        error: The exception that was raised.
        context: Identifiers (database, chat, message, update, phase) to include in the log line.
    """
    details = {
        "failure_class": classify_notion_failure(error),
        "notion_error_code": _error_code(error),
        "message": str(error),
        **context,
    }
    logger.error(f"{event}: {details}")
