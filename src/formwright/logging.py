"""Structured JSON logging for formwright.

Every module logs through ``logging.getLogger(__name__)`` under the
``formwright`` logger. ``setup_logging`` attaches one rotating JSONL file
handler at ``.formwright/formwright.log`` (5MB, 3 backups).

Structured context is passed through ``extra``::

    logger.info("Deleted template %s", tid, extra={"op": "delete_template", "template_id": tid})
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOGGER_NAME = "formwright"
LOG_FILENAME = "formwright.log"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

# record attribute -> JSON key
_EXTRA_FIELDS: tuple[tuple[str, str], ...] = (
    ("op", "op"),
    ("template_id", "template_id"),
    ("args_data", "args"),
    ("error", "error"),
)

_setup_lock = threading.Lock()


class _JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for attr, key in _EXTRA_FIELDS:
            if hasattr(record, attr):
                entry[key] = getattr(record, attr)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def _file_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


def setup_logging(formwright_dir: Path, level: int = logging.INFO) -> logging.Logger:
    """Log to ``<formwright_dir>/formwright.log`` at *level*.

    Calling again with the same directory only updates the level. Calling with
    another directory moves the handler there.
    """
    logger = logging.getLogger(LOGGER_NAME)
    target = str((formwright_dir / LOG_FILENAME).resolve())

    with _setup_lock:
        logger.setLevel(level)
        current = _file_handlers(logger)
        if any(h.baseFilename == target for h in current):
            return logger
        for h in current:
            logger.removeHandler(h)
            h.close()
        handler = RotatingFileHandler(target, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
    return logger


def teardown_logging() -> None:
    """Detach and close the file handler (tests, embedders switching projects)."""
    logger = logging.getLogger(LOGGER_NAME)
    with _setup_lock:
        for h in _file_handlers(logger):
            logger.removeHandler(h)
            h.close()
