"""Logging configuration for the apartment bot."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

NOISY_LOGGERS = ("urllib3", "requests", "httpx", "httpcore", "apscheduler", "telegram")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Marks handlers installed here so a repeated setup replaces them
_HANDLER_FLAG = "_apartment_bot_handler"


def log_file_path(log_dir: str, now: Optional[datetime] = None) -> Path:
    """Daily log file inside log_dir: apartment_bot_YYYYMMDD.log."""
    return Path(log_dir) / f"apartment_bot_{(now or datetime.now()):%Y%m%d}.log"


def setup_logging(log_level: str = None, log_dir: str = None) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Defaults to LOG_LEVEL env var or INFO.
        log_dir: Directory for a daily log file. Defaults to the LOG_DIR env
                 var; without either, logs go to stdout only. The directory
                 is created if missing.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")
    log_dir = log_dir or os.getenv("LOG_DIR")

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file_path(log_dir), encoding="utf-8"))

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_FLAG, True)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
