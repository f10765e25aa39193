# parceltrack/common/logger.py
"""
Structured logging.

Console output is coloured text or JSON lines (LOG_FORMAT). With LOG_TO_FILE
every logger also writes to one size-rotated file per process, and errors are
copied to error.log beside it.

The async helpers (log_info, log_debug, log_warning, log_error) attach the
`extra` dict to the record as `extra_data`; module, function and line of the
record point at the code that called the helper.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from parceltrack.common.constants import TypeMsg


DEFAULT_LOGGER = "parceltrack"

# caller -> helper -> _emit -> Logger.log
_CALLER_DEPTH = 3

_LEVELS: dict[TypeMsg, int] = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}

_QUIET_LIBRARIES = ("asyncpg", "redis", "httpx", "uvicorn.access")

_loggers: dict[str, logging.Logger] = {}

# Shared by every logger of the process
_file_handlers: Optional[list[logging.Handler]] = None

_initialized = False


@dataclass(frozen=True)
class LogOptions:
    level: str = "INFO"
    format: str = "colored"
    to_file: bool = False
    file_path: str = "logs/parceltrack.log"
    max_bytes: int = 10485760
    backup_count: int = 5


def _load_options() -> LogOptions:
    # Imported late: the config package logs through this module
    try:
        from parceltrack.config import settings
        section = settings.logging
        return LogOptions(
            level=str(section.LOG_LEVEL),
            format=str(section.LOG_FORMAT),
            to_file=bool(section.LOG_TO_FILE),
            file_path=section.LOG_FILE_PATH,
            max_bytes=section.LOG_MAX_BYTES,
            backup_count=section.LOG_BACKUP_COUNT,
        )
    except Exception:
        return LogOptions()


# =============================================================================
# FORMATTERS
# =============================================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry["extra"] = extra_data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console lines for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        where = f"{record.filename}:{record.lineno} {record.funcName}()"

        line = (
            f"{timestamp} {color}[{record.levelname}]{self.RESET} "
            f"{self.GRAY}[{where}]{self.RESET} {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            pairs = " ".join(f"{key}={value}" for key, value in extra_data.items())
            line += f" {self.GRAY}{pairs}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _formatter(options: LogOptions) -> logging.Formatter:
    return JsonFormatter() if options.format == "json" else ColoredFormatter()


# =============================================================================
# LOGGERS
# =============================================================================

def _shared_file_handlers(options: LogOptions) -> list[logging.Handler]:
    """Main and error file handlers, created once per process."""
    global _file_handlers

    if _file_handlers is None:
        path = Path(options.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        main = RotatingFileHandler(
            path,
            maxBytes=options.max_bytes,
            backupCount=options.backup_count,
            encoding="utf-8",
        )
        errors = RotatingFileHandler(
            path.with_name("error.log"),
            maxBytes=options.max_bytes,
            backupCount=options.backup_count,
            encoding="utf-8",
        )
        errors.setLevel(logging.ERROR)

        for handler in (main, errors):
            handler.setFormatter(_formatter(options))
        _file_handlers = [main, errors]

    return _file_handlers


def get_logger(name: str = DEFAULT_LOGGER, options: Optional[LogOptions] = None) -> logging.Logger:
    """
    Returns a configured logger; handlers are attached on first use only.

    Args:
        name: Logger name
        options: Overrides the options read from settings
    """
    if name in _loggers:
        return _loggers[name]

    options = options or _load_options()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, options.level.upper(), logging.INFO))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(options))
        logger.addHandler(console)

        if options.to_file:
            for handler in _shared_file_handlers(options):
                logger.addHandler(handler)

    logger.propagate = False
    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Configures the service logger and quietens chatty libraries. Idempotent."""
    global _initialized

    if _initialized:
        return
    _initialized = True

    get_logger(DEFAULT_LOGGER)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# ASYNC HELPERS
# =============================================================================

def _emit(
    level: int,
    message: str,
    logger_name: str,
    extra: Optional[dict[str, Any]],
    exc_info: bool = False,
) -> None:
    get_logger(logger_name).log(
        level,
        message,
        exc_info=exc_info,
        extra={"extra_data": dict(extra or {})},
        stacklevel=_CALLER_DEPTH,
    )


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Logs `message` at the level named by `type_msg`.

    Args:
        message: Message text
        type_msg: Level of the message
        logger_name: Logger name
        extra: Structured fields kept on the record
    """
    _emit(_LEVELS.get(type_msg, logging.INFO), message, logger_name, extra)


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.DEBUG, message, logger_name, extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.WARNING, message, logger_name, extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """ERROR level; `exc_info` attaches the traceback being handled."""
    _emit(logging.ERROR, message, logger_name, extra, exc_info=exc_info)
