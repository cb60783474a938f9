"""
Logging setup for the ExamGuard service

Console output always; optional rotating files under ./logs with errors
duplicated to their own file.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime
from typing import List, Optional

LOG_DIR = Path.cwd() / "logs"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Model libraries log every frame at INFO
NOISY_LOGGERS = ("mediapipe", "ultralytics", "absl")


def _rotating_handler(path: Path, max_mb: int, backups: int, level: int,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8"
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def _file_handlers(service_name: str, directory: Path,
                   formatter: logging.Formatter) -> List[logging.Handler]:
    directory.mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime("%Y-%m-%d")
    return [
        _rotating_handler(directory / f"{service_name}_{today}.log", 10, 5, logging.DEBUG, formatter),
        _rotating_handler(directory / f"{service_name}_errors.log", 5, 3, logging.ERROR, formatter),
    ]


def setup_logging(
    service_name: str = "examguard",
    level: str = "INFO",
    log_to_file: bool = False,
    log_to_console: bool = True,
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Configure the root logger. Replaces any handlers installed before.

    Args:
        service_name: Logger name and log file prefix
        level: DEBUG, INFO, WARNING or ERROR
        log_to_file: Also write rotating files
        log_to_console: Write to stdout
        log_dir: Directory for log files (defaults to ./logs)

    Returns:
        The service logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers: List[logging.Handler] = []

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        handlers.append(console)

    directory = Path(log_dir) if log_dir else LOG_DIR
    if log_to_file:
        handlers.extend(_file_handlers(service_name, directory, formatter))

    root_logger.handlers = handlers

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured: level={level} file={'on' if log_to_file else 'off'}")
    if log_to_file:
        logger.info(f"Log directory: {directory}")

    return logger


def setup_logging_from_settings(settings) -> logging.Logger:
    """setup_logging() driven by the LOG_* settings."""
    return setup_logging(
        service_name="examguard",
        level=settings.LOG_LEVEL,
        log_to_file=settings.LOG_TO_FILE
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
