"""Structured logging for copyloader.

Human output goes through rich's ``RichHandler``. With ``structured=True``
every event is printed to stdout as one JSON object per line instead.
Registered secrets are masked in messages and in string fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Set

from rich.logging import RichHandler

LOGGER_NAME = "copyloader"
REDACTED = "[REDACTED]"

# Driver loggers never get more verbose than WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "urllib3")

_HUMAN_PREFIX = {"DEBUG": "[DEBUG] ", "INFO": "", "WARNING": "[WARN] ", "ERROR": "[ERROR] "}


def _format_human(message: str, fields: Dict[str, Any]) -> str:
    """``message (key=value, ...)``"""
    if not fields:
        return message
    return f"{message} ({', '.join(f'{k}={v}' for k, v in fields.items())})"


def _root_handler(structured: bool) -> logging.Handler:
    if structured:
        return logging.StreamHandler(sys.stdout)
    return RichHandler(rich_tracebacks=True, markup=False, show_path=False)


class StructuredLogger:
    """Writes load events either as console lines or as JSON lines."""

    def __init__(self, structured: bool = False, level: str = "INFO"):
        self.structured = structured
        self.level = getattr(logging, level.upper(), logging.INFO)
        self._secrets: Set[str] = set()

        logging.basicConfig(
            level=self.level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[_root_handler(structured)],
        )
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(self.level)
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(self.level, logging.WARNING))

    def register_secret(self, secret: str):
        """Mask ``secret`` in everything logged from now on. Blank values are ignored."""
        if isinstance(secret, str) and secret.strip():
            self._secrets.add(secret)

    def _redact(self, text: str) -> str:
        # Longest first, so a secret containing another one is masked whole
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, kwargs)

    def info(self, message: str, **kwargs):
        self._log("INFO", message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, kwargs)

    def _log(self, level: str, message: str, kwargs: Dict[str, Any]):
        if getattr(logging, level) < self.level:
            return

        message = self._redact(str(message))
        fields = {k: self._redact(v) if isinstance(v, str) else v for k, v in kwargs.items()}

        if self.structured:
            entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": level,
                "message": message,
                **fields,
            }
            print(json.dumps(entry, default=str))
            return

        emit = getattr(self.logger, level.lower())
        emit(_HUMAN_PREFIX[level] + _format_human(message, fields))


logger = StructuredLogger()


def configure_logging(structured: bool, level: str) -> StructuredLogger:
    """Replace the global logger; returns the new instance."""
    global logger
    logger = StructuredLogger(structured=structured, level=level)
    return logger
