"""Structured logging configuration for cpuninstall."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import UninstallerConfig

_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "getMessage", "exc_info",
    "exc_text", "stack_info", "taskName", "message",
}


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Context added through the adapter or ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class UninstallLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds run context such as the current step."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        """Initialize with logger and extra context."""
        super().__init__(logger, extra)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add extra context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context) -> "UninstallLoggerAdapter":
        """Create new adapter with additional context."""
        new_extra = self.extra.copy()
        new_extra.update(context)
        return UninstallLoggerAdapter(self.logger, new_extra)


class LoggingManager:
    """Manage logging configuration for cpuninstall."""

    def __init__(self, config: UninstallerConfig):
        """Initialize logging manager with configuration."""
        self.config = config
        self.console = Console(stderr=True)
        self._configured = False

    def setup_logging(self) -> None:
        """Set up logging configuration based on settings."""
        if self._configured:
            return

        level = "DEBUG" if self.config.debug else self.config.log_level

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = RichHandler(
            console=self.console,
            show_time=self.config.debug,
            show_path=self.config.debug,
            rich_tracebacks=True,
            markup=False
        )
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

        if self.config.log_file:
            self.config.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_handler.setFormatter(StructuredFormatter())
            root_logger.addHandler(file_handler)

        self._configured = True


# Global logging manager instance
_logging_manager: Optional[LoggingManager] = None


def setup_logging(config: UninstallerConfig) -> LoggingManager:
    """Set up global logging configuration."""
    global _logging_manager
    _logging_manager = LoggingManager(config)
    _logging_manager.setup_logging()
    return _logging_manager


def get_logger(name: str, **context) -> UninstallLoggerAdapter:
    """Get a logger instance.

    Loggers are plain adapters over :mod:`logging`, so they can be created
    at import time; handlers are attached once :func:`setup_logging` runs.
    """
    return UninstallLoggerAdapter(logging.getLogger(name), context)
