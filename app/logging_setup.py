"""Logging configuration: plain text for local runs, JSON lines in deployment."""

import json
import logging
import sys
from typing import Any, Dict

# Extra attributes passed through `extra=` that are promoted into the output
_CONTEXT_FIELDS = ("job_id", "user_id", "generation_id", "url", "storage_path")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {attr: getattr(record, attr) for attr in _CONTEXT_FIELDS if hasattr(record, attr)}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        base.update(_context(record))
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable lines with the job context appended as key=value pairs."""

    def __init__(self):
        super().__init__(
            "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
            datefmt="%H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _context(record)
        if context:
            line += "  " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = [handler]
