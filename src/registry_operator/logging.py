"""JSON line logging for the Image Registry Operator.

Every record leaves the process as one JSON object on stdout. Resource events
logged through :func:`log_resource_event` carry the object kind, name and
namespace so they can be filtered per object.
"""

import json
import logging
import os
import sys
from typing import Any

CONTROLLER_NAME = "image-registry-operator"

# Libraries that are chatty at INFO.
QUIET_LOGGERS = ("kubernetes.client.rest", "urllib3", "botocore", "azure.core.pipeline", "google.auth")


class JsonLineFormatter(logging.Formatter):
    """Format records as single-line JSON objects.

    Messages that are already JSON objects are merged into the output instead
    of being quoted a second time.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        entry: dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        parsed = _parse_object(message)
        if parsed is not None:
            entry.update(parsed)
        else:
            entry["controller"] = CONTROLLER_NAME
            entry["message"] = message
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _parse_object(message: str) -> dict[str, Any] | None:
    if not message.startswith("{"):
        return None
    try:
        parsed = json.loads(message)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def setup_structured_logging() -> None:
    """Send JSON lines to stdout.

    The level is read from ``LOG_LEVEL`` (default ``INFO``). Replaces any
    handlers already installed on the root logger.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLineFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log an event about one Kubernetes object.

    Extra keyword arguments are added to the entry as-is; None values are
    left out.
    """
    log_data = {
        "controller": CONTROLLER_NAME,
        "kind": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update({key: value for key, value in kwargs.items() if value is not None})
    logger.log(level, json.dumps(log_data, default=str))
