"""
Manages the persistent state of the polling runtime, specifically the getUpdates offset.

This module handles reading from and writing to a JSON file so that a scheduled polling
pass resumes after the last update it processed. Pages themselves are deduplicated
against Notion, so losing this file only causes already ingested updates to be re-read.
"""
import json
import logging
from pathlib import Path
from typing import Optional
from app.config import settings

logger = logging.getLogger(__name__)


def _ensure_state_path(state_file_path: Optional[str] = None) -> Path:
    """
    Ensures that the directory for the state file exists and returns the resolved path.
    Args:
        state_file_path: Optional override of the configured state file location.
    Returns:
        Path: The resolved path to the state file.
    Raises:
        OSError: If the directory structure cannot be created.
    """
    state_path = Path(state_file_path or settings.STATE_FILE_PATH).expanduser()
    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        logger.error(f"Failed to prepare state directory '{state_path.parent}': {error}", exc_info=True)
        raise
    return state_path


def get_polling_offset(state_file_path: Optional[str] = None) -> Optional[int]:
    """
    Reads the next getUpdates offset from the state file.
    Args:
        state_file_path: Optional override of the configured state file location.
    Returns:
        The stored offset, or None if the file doesn't exist or is invalid.
    """
    state_path = _ensure_state_path(state_file_path)
    try:
        with state_path.open('r', encoding='utf-8') as handle:
            offset = json.load(handle).get("offset")
    except FileNotFoundError:
        logger.warning(
            f"State file not found at '{state_path}'. Polling from the oldest pending update."
        )
        return None
    except (json.JSONDecodeError, AttributeError):
        logger.warning(
            f"State file at '{state_path}' contains invalid JSON. Resetting the polling offset."
        )
        return None
    except PermissionError as error:
        logger.error(
            f"Insufficient permissions to read state file '{state_path}': {error}",
            exc_info=True
        )
        return None
    if isinstance(offset, bool) or not isinstance(offset, int):
        return None
    return offset


def save_polling_offset(offset: int, state_file_path: Optional[str] = None) -> None:
    """
    Saves the next getUpdates offset to the state file.
    Args:
        offset: The update_id of the next update to fetch.
        state_file_path: Optional override of the configured state file location.
    """
    state_path = _ensure_state_path(state_file_path)
    logger.info(f"Saving polling offset {offset} to state file at '{state_path}'.")
    try:
        with state_path.open('w', encoding='utf-8') as handle:
            json.dump({"offset": offset}, handle, indent=2)
    except PermissionError as error:
        logger.critical(
            f"Failed to save state to '{state_path}' due to insufficient permissions: {error}",
            exc_info=True
        )
        raise
    except OSError as error:
        logger.critical(
            f"Failed to persist state to '{state_path}': {error}",
            exc_info=True
        )
        raise
