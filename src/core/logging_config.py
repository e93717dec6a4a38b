"""
Logging setup for the detection service.

Console plus a size-rotated file under `config.logs_dir`. Package loggers
(`src`, `llm`, `backend`) receive the same handlers so module loggers created
with logging.getLogger(__name__) end up in both outputs.
"""

import logging
import logging.handlers
from typing import List, Optional, Sequence

from .config import config

DEFAULT_LOGGER_NAMES = ("src", "llm", "backend")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _build_handlers(log_name: str) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: List[logging.Handler] = [
        logging.StreamHandler(),
        logging.handlers.RotatingFileHandler(
            config.logs_dir / f"{log_name}.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
        ),
    ]
    for handler in handlers:
        handler.setLevel(config.log_level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    logger_name: str = "anomaly_service",
    propagate_from: Optional[Sequence[str]] = DEFAULT_LOGGER_NAMES,
) -> logging.Logger:
    """
    Attach console and file handlers and return the named logger.

    Args:
        logger_name: Logger to configure; also names the log file
        propagate_from: Package loggers that share the same handlers

    Returns:
        The configured logger. Calling again is a no-op.
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    handlers = _build_handlers(logger_name)
    for name in (logger_name, *(propagate_from or ())):
        target = logging.getLogger(name)
        target.setLevel(config.log_level)
        if target.handlers:
            continue
        for handler in handlers:
            target.addHandler(handler)

    return logger
