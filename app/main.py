"""
Main entrypoint for the Telegram-to-Notion bridge.

Configures logging, then either serves the webhook or runs one polling pass depending
on RUN_MODE. A scheduler invoking polling mode sees a non-zero exit status when the
runtime fails.
"""
import logging
import sys
from app.config import settings
from app.logging_config import setup_logging
from app.bootstrap import run as run_bootstrap

setup_logging()
logger = logging.getLogger(__name__)

def main() -> int:
    """
    Starts the configured runtime.
    Returns:
        The process exit status.
    """
    logger.info(f"Telegram-to-Notion bridge starting in {settings.RUN_MODE} mode.")
    try:
        run_bootstrap()
    except Exception as error:
        logger.critical(f"Bridge terminated with a critical error: {error}", exc_info=True)
        return 1
    logger.info("Bridge stopped.")
    return 0

if __name__ == "__main__":
    sys.exit(main())
