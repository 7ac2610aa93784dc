"""
Unified logging setup
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from budgettracker.core.settings import settings


def _create_file_handler(log_path: Path, log_level: int) -> logging.FileHandler:
    """Create a file handler

    Args:
        log_path: log file path
        log_level: log level

    Returns:
        configured file handler
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(_get_formatter())
    return file_handler


def _get_formatter() -> logging.Formatter:
    return logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def setup_logger(name: str = "", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once and return a named logger

    Args:
        name: logger name (empty configures the root logger)
        log_file: optional log file path, overrides LOG_FILE

    Returns:
        the configured logger
    """
    logger = logging.getLogger(name)
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return logger

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_get_formatter())
    root_logger.addHandler(console_handler)

    # Provider SDKs log every HTTP request at INFO
    for noisy in ("httpx", "openai", "anthropic", "apscheduler.executors.default"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    log_path: Optional[Path] = None
    if log_file:
        log_path = Path(log_file)
    elif settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)

    if log_path:
        root_logger.addHandler(_create_file_handler(log_path, log_level))

    return logger
