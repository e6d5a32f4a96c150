"""
Logging setup for Workshop Tracker.

Everything logs under the "workshop_tracker" namespace. The snapshot
refresh thread, async write threads and request threads interleave, so
each line carries the name of the thread that wrote it:

    2025-05-03 10:15:31 [DEBUG   ] [Snapshot] workshop_tracker.services.snapshot_service - Snapshot refreshed
    2025-05-03 10:15:32 [INFO    ] [Write-3f2a91c0] workshop_tracker.write.item-42 - Saved waxing

Writes against one record go to workshop_tracker.write.<kind>-<id>, so a
single grep shows the history of an order or item.
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path


APP_NAMESPACE = "workshop_tracker"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
LOG_DIR = Path(__file__).parent / "logs"


class ThreadContextFilter(logging.Filter):
    """Stamps each record with the current thread's name."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        return True


def setup_logging(log_level: int = logging.INFO, enable_file_logging: bool = True) -> logging.Logger:
    """
    Configure the namespace logger and return it.

    Console output is always on. With enable_file_logging a rotating
    logs/workshop_tracker.log is added next to this file.
    """
    logger = logging.getLogger(APP_NAMESPACE)
    logger.setLevel(log_level)
    logger.propagate = False

    # create_app may run more than once per process
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    thread_filter = ThreadContextFilter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if enable_file_logging:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            filename=LOG_DIR / f"{APP_NAMESPACE}.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        ))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler.addFilter(thread_filter)
        logger.addHandler(handler)

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the application namespace (pass __name__)."""
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


def get_write_logger(record_kind: str, record_id: object) -> logging.Logger:
    return logging.getLogger(f"{APP_NAMESPACE}.write.{record_kind}-{record_id}")


def set_thread_name(name: str) -> None:
    threading.current_thread().name = name
