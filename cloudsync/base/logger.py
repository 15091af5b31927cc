"""
Structured logging for lifecycle operations.

Records render as one JSON object per line. Each controller logs through
a :class:`ResourceLog` bound to its provider and resource kind, so call
sites only add what changes per record (operation, state, resource id).
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, MutableMapping

CONTEXT_FIELDS = ("request_id", "provider", "resource_type", "resource_id", "operation", "state")

# Keyword arguments a ResourceLog call may carry besides the logging ones.
_PER_CALL = ("request_id", "resource_id", "operation", "state")


class StructuredFormatter(logging.Formatter):
    """Render a record and its lifecycle context as a JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


ROOT_LOGGER = "cloudsync"


def get_logger(name: str = "cloudsync.lifecycle") -> logging.Logger:
    """Return the named logger.

    The JSON stderr handler is attached once, to the ``cloudsync`` logger,
    so every ``cloudsync.*`` logger emits structured records through it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


class ResourceLog(logging.LoggerAdapter):
    """Logger adapter carrying one resource's context.

    ``request_id``, ``resource_id``, ``operation`` and ``state`` may be
    passed to any logging call as keyword arguments. Every record gets a
    fresh ``request_id`` unless one is given.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.pop("extra", None) or {})
        for name in _PER_CALL:
            if name in kwargs:
                extra[name] = kwargs.pop(name)
        extra.setdefault("request_id", uuid.uuid4().hex[:12])
        kwargs["extra"] = extra
        return msg, kwargs


def resource_log(
    provider: str,
    resource_type: str,
    logger: logging.Logger | None = None,
) -> ResourceLog:
    """Bind a :class:`ResourceLog` to *provider* and *resource_type*."""
    return ResourceLog(
        logger or get_logger(),
        {"provider": provider, "resource_type": resource_type},
    )
