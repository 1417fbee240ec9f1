"""Logging setup for the planner CLI and its library modules."""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "ROOT_LOGGER",
    "JsonLogFormatter",
    "configure_logger",
    "reset_logger",
]


ROOT_LOGGER = "study_planner"

_FILE_MARKER = "_study_planner_file"
_CONSOLE_MARKER = "_study_planner_console"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("x", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    *,
    log_dir: Path,
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    verbose: bool = False,
    filename: str = "study-planner.log",
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path]:
    """Attach the JSON file handler (and console handler when verbose).

    Calling this again reuses the existing handlers, so repeated CLI
    invocations in one process do not duplicate output.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    file_handler = _find_handler(logger, _FILE_MARKER)
    if file_handler is None:
        file_handler = _open_file_handler(
            log_dir, filename, max_bytes=max_bytes, backup_count=backup_count
        )
        setattr(file_handler, _FILE_MARKER, True)
        logger.addHandler(file_handler)
    file_handler.setLevel(logging.DEBUG if verbose else _level_number(level))

    console = _find_handler(logger, _CONSOLE_MARKER)
    if verbose and console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        setattr(console, _CONSOLE_MARKER, True)
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, Path(file_handler.baseFilename)  # type: ignore[attr-defined]


def reset_logger(name: str = ROOT_LOGGER) -> None:
    """Close and detach every handler installed by :func:`configure_logger`."""

    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        if getattr(handler, _FILE_MARKER, False) or getattr(
            handler, _CONSOLE_MARKER, False
        ):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def _find_handler(logger: logging.Logger, marker: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _open_file_handler(
    log_dir: Path, filename: str, *, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    for directory in (log_dir, Path(tempfile.gettempdir()) / "study-planner-logs"):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                directory / filename,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except PermissionError:
            continue
        handler.setFormatter(JsonLogFormatter())
        return handler
    raise PermissionError(f"No writable log directory for {filename}")


def _level_number(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.INFO


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)
