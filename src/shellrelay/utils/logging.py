"""Logging setup utilities for shellrelay.

Configures the ``shellrelay`` logger from the logging settings and
provides ``ServiceLogAdapter``, a logger adapter that carries bound
key/value fields so every line can be attributed to its service.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import datetime, timezone
from typing import Any

from shellrelay.config.settings import LoggingConfig

ROOT_LOGGER = "shellrelay"


class ServiceLogAdapter(logging.LoggerAdapter):
    """Logger adapter with bound key/value fields.

    Per-call ``extra`` values are merged over the bound fields and the
    combined mapping is attached to the record as ``fields``::

        log = ServiceLogAdapter(logger, {"shell": "/bin/sh", "port": 50135})
        log.warning("failed to accept", extra={"error": "EMFILE"})
    """

    def __init__(self, logger: logging.Logger, fields: Mapping[str, Any] | None = None) -> None:
        super().__init__(logger, dict(fields or {}))

    def bind(self, **fields: Any) -> ServiceLogAdapter:
        """Return a new adapter with ``fields`` added to the bound ones."""
        return ServiceLogAdapter(self.logger, {**self.extra, **fields})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {**self.extra, **(kwargs.get("extra") or {})}
        kwargs["extra"] = {"fields": fields}
        return msg, kwargs


class KeyValueFormatter(logging.Formatter):
    """Formatter appending a record's ``fields`` as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if fields:
            line += " " + " ".join(f"{k}={_quote(v)}" for k, v in fields.items())
        return line


class JsonFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _quote(value: Any) -> str:
    text = str(value)
    if not text or any(c.isspace() or c in '"=' for c in text):
        return json.dumps(text)
    return text


def get_service_logger(name: str = ROOT_LOGGER, **fields: Any) -> ServiceLogAdapter:
    """Return a ``ServiceLogAdapter`` for ``name`` bound with ``fields``."""
    return ServiceLogAdapter(logging.getLogger(name), fields)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure logging for the shellrelay application.

    Sets up the ``shellrelay`` logger with the configured level and
    formatter. Output goes to stderr, to stdout when ``config.file`` is
    ``"-"``, or is appended to ``config.file`` otherwise.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, text output on stderr).
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for old in list(root_logger.handlers):
        root_logger.removeHandler(old)
        old.close()

    formatter: logging.Formatter
    if config.json_output:
        formatter = JsonFormatter()
    else:
        formatter = KeyValueFormatter(config.format)

    handler: logging.Handler
    if config.file is None:
        handler = logging.StreamHandler(sys.stderr)
    elif config.file == "-":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.FileHandler(config.file, mode="a", encoding="utf-8")
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    root_logger.debug("Logging initialized at %s level", config.level)
