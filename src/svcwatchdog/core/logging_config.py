#!/usr/bin/env python3
"""
Centralized logging configuration for the watchdog

Records carry the thread name, since the watch session, the periodic resync
and each HTTP trigger log from their own threads.
"""

import logging
import sys
from typing import Optional
from pathlib import Path

CONSOLE_FORMAT = "%(asctime)s [%(threadName)s] %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s [%(threadName)s] %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"

# The Kubernetes client logs every request through urllib3
QUIET_LOGGERS = ("urllib3", "kubernetes", "uvicorn.access")

LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',     # Cyan
    logging.INFO: '\033[32m',      # Green
    logging.WARNING: '\033[33m',   # Yellow
    logging.ERROR: '\033[31m',     # Red
    logging.CRITICAL: '\033[35m',  # Magenta
}
RESET = '\033[0m'


class ColoredFormatter(logging.Formatter):
    """Colors the level name of console records"""

    def format(self, record):
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        # Work on a copy; other handlers format the same record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{RESET}"
        return super().format(colored)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_colors: bool = True
) -> None:
    """
    Replace the root handlers with a console handler and an optional file handler

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional log file path, parent directories are created
        enable_colors: Color level names on the console
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT) if enable_colors else logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).info(
        f"Logging configured at {logging.getLevelName(numeric_level)} level"
        + (f", writing to {log_file}" if log_file else "")
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)
