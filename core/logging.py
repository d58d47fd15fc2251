"""
Application Logging

Every component logs through a child of the "cryptopulse" logger:

    from core.logging import get_logger
    log = get_logger(__name__)   # -> "cryptopulse.services.relay"

Connection lifecycle lines on any of the three links (upstream, subscriber,
client) go through log_websocket_event so they share one format and level
policy. The level comes from LOG_LEVEL.
"""

import logging
import sys

from core.config import settings


ROOT_LOGGER_NAME = "cryptopulse"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(message)s"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Configure stdout logging once and return the application logger."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(level)
    return app_logger


logger = setup_logging(settings.log_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """Change the application and root log level at runtime."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric)
    logging.getLogger().setLevel(numeric)


# ============================================
# Connection Lifecycle
# ============================================

def log_websocket_event(link: str, event: str, details: str = None) -> None:
    """
    Log one connection lifecycle event.

    "error" logs at ERROR, "disconnected" and "gave_up" at WARNING,
    everything else at INFO.

    Example:
        >>> log_websocket_event("upstream", "connected", "10 ticker streams")
        ... [INFO] cryptopulse WebSocket: upstream connected | 10 ticker streams
    """
    details_str = f" | {details}" if details else ""

    if event == "error":
        level = logging.ERROR
    elif event in ("disconnected", "gave_up"):
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(level, f"WebSocket: {link} {event}{details_str}")
