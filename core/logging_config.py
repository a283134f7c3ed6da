"""
Logging setup for the auction client.

The dashboard redraws stdout, so log records go to rotating files
(``auction_client.log`` plus an ERROR-only ``errors.log``) and, only when
enabled, to stderr. Records are JSON lines in production.

Modules attach context with ``extra={"extra_data": {...}}``; both formatters
render it.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

MAIN_LOG_FILE = "auction_client.log"
ERROR_LOG_FILE = "errors.log"

# websocket-client logs every frame and handshake at DEBUG
QUIET_LOGGERS = {"websocket": logging.WARNING}

_configured = False


class StructuredFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_data", None) or {})
        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Short coloured lines for stderr: time, level, thread, logger, message, context"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[92m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[95m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (f"[{stamp}] {color}{record.levelname:<7}{self.RESET} "
                f"[{record.threadName}] {record.name}: {record.getMessage()}")

        context = getattr(record, "extra_data", None)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter,
                      max_log_size_mb: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_log_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config_dict: Optional[Dict[str, Any]] = None, force: bool = False) -> None:
    """
    Configure the root logger from a LOGGING_CONFIG-style dict.

    Keys: log_level, log_dir, enable_file_logging, enable_console_logging,
    structured_logging, max_log_size_mb, backup_count. Later calls are
    ignored unless force is set.
    """
    global _configured
    if _configured and not force:
        return

    settings = {
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_dir": os.getenv("LOG_DIR", "./logs"),
        "enable_file_logging": True,
        "enable_console_logging": False,
        "structured_logging": False,
        "max_log_size_mb": 10,
        "backup_count": 5,
        **(config_dict or {}),
    }
    level = getattr(logging, str(settings["log_level"]).upper())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if settings["enable_file_logging"]:
        log_dir = Path(settings["log_dir"])
        log_dir.mkdir(parents=True, exist_ok=True)
        if settings["structured_logging"]:
            file_formatter = StructuredFormatter()
        else:
            file_formatter = logging.Formatter(
                "[%(asctime)s] [%(levelname)s] [%(threadName)s] [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        for filename, handler_level in ((MAIN_LOG_FILE, level), (ERROR_LOG_FILE, logging.ERROR)):
            root.addHandler(_rotating_handler(log_dir / filename, handler_level, file_formatter,
                                              settings["max_log_size_mb"], settings["backup_count"]))

    if settings["enable_console_logging"]:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(StructuredFormatter() if settings["structured_logging"] else ColoredConsoleFormatter())
        root.addHandler(console)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    _configured = True
    logging.getLogger(__name__).info("Logging configured", extra={"extra_data": {
        "log_level": logging.getLevelName(level),
        "log_dir": str(settings["log_dir"]) if settings["enable_file_logging"] else None,
        "console": settings["enable_console_logging"],
        "structured": settings["structured_logging"],
    }})


def get_logger(name: str) -> logging.Logger:
    """Module logger; handlers come from setup_logging() at the entry point"""
    return logging.getLogger(name)


def log_error_with_context(logger: logging.Logger, error: Exception,
                           operation: str, **context) -> None:
    """Log an ERROR naming the failed operation, with the exception type and context"""
    logger.error(f"Error in {operation}: {error}", extra={"extra_data": {
        "operation": operation,
        "error_type": type(error).__name__,
        "error_message": str(error),
        **context,
    }})
