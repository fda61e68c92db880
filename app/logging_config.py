"""
Module for configuring the application's logging system.

This module provides a centralized function to set up the root logger, so webhook
and polling runs log the same way when run under a container or a scheduler.
"""
import logging
import sys
from app.config import settings

def setup_logging() -> None:
    """
    Configures the root logger for the application.
    Logs to standard output at the level configured by LOG_LEVEL.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL.strip().upper(),
        format="%(asctime)s - [%(levelname)s] - %(name)s - %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request URL at INFO, which would leak the bot token in file download URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
