"""
Central logging configuration.
"""

import logging
import sys

from .file_logger import FileLogger, route_external_loggers
from .middleware import TransactionIdFilter
from .structured_logger import build_formatter

APP_LOGGER_NAME = "leasehold_backend"


class LoggingConfig:
    """Installs handlers on the application logger exactly once."""

    def __init__(self):
        self.file_logger: FileLogger | None = None
        self.transaction_filter = TransactionIdFilter()
        self._handler: logging.Handler | None = None
        self._is_configured = False

    def setup(
        self,
        log_to_file: bool = True,
        log_level: str = "INFO",
        log_file_path: str = "logs/app.log",
        use_json_format: bool = True,
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 5,
    ) -> logging.Logger:
        """
        Configure the ``leasehold_backend`` logger tree.

        Args:
            log_to_file: Write through a queue to a rotating file as well as stdout
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file_path: Path to the log file
            use_json_format: JSON lines instead of the plain text format
            max_bytes: Maximum file size before rotation
            backup_count: Number of rotated files to keep

        Returns:
            The application logger
        """
        app_logger = get_logger()
        if self._is_configured:
            return app_logger

        if log_to_file:
            self.file_logger = FileLogger(
                log_file_path=log_file_path,
                max_bytes=max_bytes,
                backup_count=backup_count,
                log_level=log_level,
                use_json_format=use_json_format,
            )
            handler: logging.Handler = self.file_logger.start()
        else:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(build_formatter(use_json_format))

        handler.addFilter(self.transaction_filter)
        route_external_loggers(handler)

        app_logger.handlers.clear()
        app_logger.addHandler(handler)
        app_logger.setLevel(getattr(logging, log_level.upper()))
        app_logger.propagate = False

        self._handler = handler
        self._is_configured = True
        return app_logger

    def shutdown(self) -> None:
        if self.file_logger:
            self.file_logger.stop()
            self.file_logger = None
        if self._handler is not None:
            get_logger().removeHandler(self._handler)
            self._handler = None
        self._is_configured = False


_logging_config = LoggingConfig()


def setup_logging(settings) -> logging.Logger:
    """Set up logging from the application settings object."""
    return _logging_config.setup(
        log_to_file=settings.log_to_file,
        log_level=settings.log_level,
        log_file_path=settings.log_file_path,
        use_json_format=settings.log_format.lower() == "json",
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger under the application namespace.

    Args:
        name: Optional suffix, e.g. ``get_logger("scheduler")``
    """
    if name:
        return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
    return logging.getLogger(APP_LOGGER_NAME)


def shutdown_logging() -> None:
    _logging_config.shutdown()
