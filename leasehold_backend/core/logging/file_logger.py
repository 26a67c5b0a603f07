"""
Queue-backed log handlers with file rotation.

Records are pushed onto an in-memory queue by the request/job coroutines and
written by a background listener thread, so a slow disk never blocks the
event loop during a sweep.
"""

import logging
import os
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler

from .structured_logger import build_formatter

# Third-party loggers routed through our handlers, with their floor level.
EXTERNAL_LOGGERS = {
    "sqlalchemy": logging.WARNING,
    "alembic": logging.INFO,
    "uvicorn": logging.INFO,
    "fastapi": logging.INFO,
    "asyncmy": logging.INFO,
}


class FileLogger:
    """Owns the log queue, its listener thread and the rotating file handler."""

    def __init__(
        self,
        log_file_path: str = "logs/app.log",
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 5,
        log_level: str = "INFO",
        use_json_format: bool = True,
    ):
        self.log_file_path = log_file_path
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.level = getattr(logging, log_level.upper())
        self.use_json_format = use_json_format
        self._log_queue: queue.Queue = queue.Queue()
        self._listener: QueueListener | None = None
        self._queue_handler: QueueHandler | None = None

        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

    def _handlers(self) -> list[logging.Handler]:
        formatter = build_formatter(self.use_json_format)

        file_handler = RotatingFileHandler(
            self.log_file_path, maxBytes=self.max_bytes, backupCount=self.backup_count
        )
        console_handler = logging.StreamHandler(sys.stdout)

        for handler in (file_handler, console_handler):
            handler.setLevel(self.level)
            handler.setFormatter(formatter)
        return [file_handler, console_handler]

    def start(self) -> QueueHandler:
        """Start the listener thread and return the handler loggers write to."""
        if self._queue_handler is None:
            self._listener = QueueListener(
                self._log_queue, *self._handlers(), respect_handler_level=True
            )
            self._listener.start()
            self._queue_handler = QueueHandler(self._log_queue)
            self._queue_handler.setLevel(self.level)
        return self._queue_handler

    def stop(self) -> None:
        """Flush remaining records and stop the listener."""
        if self._listener:
            self._listener.stop()
            self._listener = None
        self._queue_handler = None


def route_external_loggers(handler: logging.Handler) -> None:
    """Send third-party library output through ``handler`` instead of stderr."""
    for logger_name, level in EXTERNAL_LOGGERS.items():
        ext_logger = logging.getLogger(logger_name)
        ext_logger.handlers.clear()
        ext_logger.addHandler(handler)
        ext_logger.propagate = False
        ext_logger.setLevel(level)

    logging.captureWarnings(True)
    warnings_logger = logging.getLogger("py.warnings")
    warnings_logger.handlers.clear()
    warnings_logger.addHandler(handler)
    warnings_logger.propagate = False
