"""
Parsing of raw Telegram update payloads.

Updates are handled as plain JSON dictionaries so that webhook deliveries and
getUpdates results go through exactly the same code path. This module also renders
the human-readable page body and the structured audit payload stored on each page.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError
from app.errors import MalformedInputError
from app.models import ChatInfo, FileInfo, ParsedMessage

logger = logging.getLogger(__name__)

MESSAGE_KEYS = ("message", "channel_post", "edited_message")
ATTACHMENT_KEYS = ("document", "photo", "video", "audio", "voice", "video_note", "animation", "sticker")
TITLE_MAX_LENGTH = 100


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def get_update_id(update: Any) -> int:
    """
    Returns the numeric update_id of a Telegram update.
    Integral floats such as 7.0 are accepted; fractional values cannot serve as a
    getUpdates offset or a Notion dedupe key and are rejected.
    Raises:
        MalformedInputError: If the payload is not an object or update_id is not an integral number.
    """
    if not isinstance(update, dict):
        raise MalformedInputError("Invalid Telegram update payload")
    update_id = _as_int(update.get("update_id"))
    if update_id is None:
        raise MalformedInputError("Invalid Telegram update payload")
    return update_id


def select_message(update: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
    """Returns the update type and message object, preferring message over channel_post over edited_message."""
    for key in MESSAGE_KEYS:
        message = update.get(key)
        if message:
            return (key, message) if isinstance(message, dict) else None
    return None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _file_info(raw: Any, attachment_type: str) -> Optional[FileInfo]:
    """Builds attachment metadata; missing identifiers are kept so the upload is recorded as failed."""
    if not isinstance(raw, dict):
        return None
    info = FileInfo(
        file_id=_as_str(raw.get("file_id")),
        file_unique_id=_as_str(raw.get("file_unique_id")),
        file_size=_as_int(raw.get("file_size")),
        file_name=_as_str(raw.get("file_name")),
        mime_type=_as_str(raw.get("mime_type")),
        type=attachment_type,
    )
    if info.file_id is None:
        logger.warning(f"{attachment_type} attachment has no file_id; it will be recorded as failed.")
    return info


def extract_files(message: Dict[str, Any]) -> List[FileInfo]:
    """
    Extracts one FileInfo per attachment kind present on the message.
    Only the last (largest) photo size is kept.
    Args:
        message: The Telegram message object.
    Returns:
        The attachments in a fixed kind order.
    """
    files: List[FileInfo] = []
    for attachment_type in ATTACHMENT_KEYS:
        raw = message.get(attachment_type)
        if not raw:
            continue
        if attachment_type == "photo":
            if not isinstance(raw, list):
                continue
            raw = raw[-1]
        info = _file_info(raw, attachment_type)
        if info is not None:
            files.append(info)
    return files


def parse_update(update: Dict[str, Any]) -> Optional[ParsedMessage]:
    """
    Reduces a Telegram update to the fields needed for page creation.
    Args:
        update: The raw update payload.
    Returns:
        The parsed message, or None if the update carries no usable message.
    Raises:
        MalformedInputError: If update_id is missing or not a number.
    """
    update_id = get_update_id(update)
    selected = select_message(update)
    if selected is None:
        return None
    update_type, message = selected
    chat = message.get("chat")
    message_id = _as_int(message.get("message_id"))
    if not isinstance(chat, dict) or message_id is None:
        return None
    try:
        chat_info = ChatInfo(id=chat.get("id"), title=chat.get("title"), type=chat.get("type"))
    except ValidationError as error:
        logger.warning(f"Update {update_id} has an unusable chat object: {error}")
        return None
    raw_text = message.get("text") if isinstance(message.get("text"), str) else None
    caption = message.get("caption") if isinstance(message.get("caption"), str) else None
    return ParsedMessage(
        update_id=update_id,
        update_type=update_type,
        chat=chat_info,
        message_id=message_id,
        message_thread_id=_as_int(message.get("message_thread_id")),
        date=_as_int(message.get("date")),
        text=raw_text if raw_text is not None else (caption or ""),
        raw_text=raw_text,
        caption=caption,
        files=extract_files(message),
    )


def build_title(parsed: ParsedMessage) -> str:
    """Uses the first 100 characters of the message text, or a chat/message label for empty messages."""
    title = parsed.text.strip()[:TITLE_MAX_LENGTH]
    return title or f"[{parsed.chat.label}] Message #{parsed.message_id}"


def build_content(parsed: ParsedMessage) -> str:
    """
    Renders the human-readable body of the page.
    Args:
        parsed: The parsed message.
    Returns:
        Multi-line text with sender, identifiers, message text and attachment kinds.
    """
    lines = [f"From: {parsed.chat.label} ({parsed.chat.type or 'chat'})"]
    if parsed.message_thread_id is not None:
        lines.append(f"Topic/Thread ID: {parsed.message_thread_id}")
    lines.append(f"Chat ID: {parsed.chat.id}")
    lines.append(f"Update ID: {parsed.update_id}")
    lines.append(f"Message ID: {parsed.message_id}")
    lines.append(parsed.text)
    content = "\n".join(lines)
    if parsed.files:
        content += "\n\nAttachments: " + ", ".join(file.type for file in parsed.files)
    return content


def build_audit_payload(parsed: ParsedMessage, notion_api_version: str, max_file_bytes: int) -> Dict[str, Any]:
    """Builds the structured update record stored as a JSON block when the page is created."""
    return {
        "update_id": parsed.update_id,
        "update_type": parsed.update_type,
        "chat": {"id": parsed.chat.id, "title": parsed.chat.title, "type": parsed.chat.type},
        "message": {
            "message_id": parsed.message_id,
            "message_thread_id": parsed.message_thread_id,
            "date": parsed.date,
            "text": parsed.raw_text,
            "caption": parsed.caption,
        },
        "attachments": [file.model_dump(exclude_none=True) for file in parsed.files],
        "upload_config": {
            "notion_api_version": notion_api_version,
            "max_file_bytes": max_file_bytes,
        },
    }
