from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict

NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "chromadb", "pypdf", "fastembed", "multipart")
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}


class _PlainFormatter(logging.Formatter):
    """Single-line records on stderr; DEBUG adds time, thread and source location."""

    short_fmt = "%(levelname)s %(name)s - %(message)s"
    debug_fmt = (
        "%(asctime)s %(levelname)s %(name)s [%(threadName)s] "
        "%(filename)s:%(lineno)d - %(message)s"
    )

    def __init__(self, debug: bool = False) -> None:
        super().__init__(
            fmt=self.debug_fmt if debug else self.short_fmt, datefmt="%Y-%m-%d %H:%M:%S"
        )


class _JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": record.threadName,
            "file": record.filename,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _coerce_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        upper = level.strip().upper()
        if upper in _LEVELS:
            return getattr(logging, upper)
        if upper.isdigit():
            return int(upper)
    return logging.INFO


def setup_logging(level: str | int | None = None, json_logs: bool = False) -> None:
    """
    Configure the root logger for the process.

    Args:
        level: explicit level ("DEBUG", "INFO", ...); falls back to LOG_LEVEL, then INFO.
        json_logs: emit JSON lines instead of plain text (both go to stderr).
    """
    final_level = _coerce_level(level or os.getenv("LOG_LEVEL") or logging.INFO)

    root = logging.getLogger()
    root.setLevel(final_level)
    # replace, not stack, so repeated calls (tests, reloads) don't duplicate output
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stderr)
    if json_logs:
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(_PlainFormatter(debug=final_level <= logging.DEBUG))
    root.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(final_level, logging.WARNING))
