"""Logging utilities for executor."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

# Global logger instance (singleton)
_logger: Optional[logging.Logger] = None


def get_logger() -> logging.Logger:
    """Get or create the chat logger."""
    global _logger
    if _logger is None:
        _logger = _setup_logger()
    return _logger


def _setup_logger() -> logging.Logger:
    """Setup logging.

    By default, does not log to file.
    Set RETTIB_LOG_FILE environment variable to enable file logging.
    - Set to a file path to log to that specific file.
    - Set to "1", "true", "yes", or "on" to log to the default logs directory.
    """
    logger = logging.getLogger("rettib_chat")
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    log_env = os.environ.get("RETTIB_LOG_FILE")
    if not log_env:
        return logger

    if log_env.lower() in ("1", "true", "yes", "on"):
        log_path = Path.cwd() / "logs" / f"chat_{datetime.now().strftime('%Y-%m-%d')}.log"
    else:
        log_path = Path(log_env)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(file_handler)
    except OSError as e:
        # Fall back to stderr so the failure is at least visible
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(f"Failed to setup log file: {e} | %(message)s"))
        logger.addHandler(stream_handler)

    return logger
