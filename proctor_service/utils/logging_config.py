"""
Logging setup for the proctor service

Configures the root logger once at startup; modules log through
logging.getLogger(__name__).
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose INFO output drowns out session events
QUIET_LOGGERS = ("httpx", "httpcore")


def _build_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(
    service_name: str = "proctor-service",
    level: str = "INFO",
    log_to_file: bool = False,
    log_to_console: bool = True,
    log_dir: str = "logs",
    quiet_loggers: Iterable[str] = QUIET_LOGGERS
) -> logging.Logger:
    """
    Set up root logging for the service.

    Args:
        service_name: Logger name and log file prefix
        level: Root log level name (DEBUG, INFO, WARNING, ERROR)
        log_to_file: Add a rotating file handler under log_dir
        log_to_console: Add a stdout handler
        log_dir: Directory for log files (created if missing)
        quiet_loggers: Third-party loggers capped at WARNING

    Returns:
        The service logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    log_file: Optional[Path] = None

    if log_to_console:
        root_logger.addHandler(_build_handler(logging.StreamHandler(sys.stdout), formatter))

    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"{service_name}_{datetime.now():%Y-%m-%d}.log"
        root_logger.addHandler(_build_handler(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding="utf-8"
            ),
            formatter
        ))

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info(f"{service_name} logging at {level.upper()}")
    if log_file is not None:
        logger.info(f"Writing logs to {log_file}")

    return logger
