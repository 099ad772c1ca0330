"""
User messenger hook: notify(message, is_error). Injected into the extraction service;
falls back to logging when no display surface is wired.
"""
import logging
from typing import Callable

logger = logging.getLogger(__name__)

Notifier = Callable[[str, bool], None]


def log_notifier(message: str, is_error: bool = False) -> None:
    """Fallback messenger: write the user message to the log."""
    if is_error:
        logger.error("User message: %s", message)
    else:
        logger.info("User message: %s", message)
