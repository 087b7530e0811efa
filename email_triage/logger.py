"""
Logging for the email triage service.

All modules log through children of the ``email_triage`` logger, which gets a
Rich console handler and, when LOG_DIR is set, a per-run log file.
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from .config import config

PACKAGE_LOGGER = "email_triage"

# Libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "googleapiclient.discovery_cache", "urllib3.connectionpool")


def _resolve_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level or config.log_level).upper(), logging.INFO)


def _run_log_file(name: str) -> Optional[Path]:
    if not config.logs_dir:
        return None
    config.logs_dir.mkdir(parents=True, exist_ok=True)
    started = datetime.now().strftime("%Y%m%d_%H%M%S")
    return config.logs_dir / f"{name}_{started}.log"


def setup_logger(
    name: str = PACKAGE_LOGGER,
    log_file: Optional[Path] = None,
    level: Union[int, str, None] = None,
) -> logging.Logger:
    """
    Attach the console and file handlers to ``name``, replacing any existing ones.

    Args:
        name: Logger to configure
        log_file: Explicit log file; defaults to a timestamped file under LOG_DIR
        level: Level name or number; defaults to LOG_LEVEL

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    logger.handlers.clear()

    console = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=True
    )
    console.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    logger.addHandler(console)

    log_file = log_file or _run_log_file(name)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s [%(threadName)s] %(filename)s:%(lineno)d %(message)s"
        ))
        logger.addHandler(file_handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; a child of the package logger when ``name`` is under the package."""
    return logging.getLogger(name)


logger = setup_logger()


def handle_exception(exc_type, exc_value, exc_traceback):
    """Route uncaught exceptions to the package logger."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = handle_exception
