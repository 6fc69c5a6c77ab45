"""Shared state for handlers."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..k8s.client import Clients, get_api_client, is_conflict
from ..parameters import Parameters
from ..resource.generator import Generator

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_generator: Generator | None = None


def get_generator() -> Generator:
    """Return the process-wide Generator, building it on first use."""
    global _generator
    with _lock:
        if _generator is None:
            clients = Clients.from_api_client(get_api_client())
            _generator = Generator(clients, Parameters.from_env())
        return _generator


def set_generator(generator: Generator | None) -> None:
    """Replace the process-wide Generator."""
    global _generator
    with _lock:
        _generator = generator


def persist_config_status(generator: Generator, cr: dict[str, Any], previous: dict[str, Any]) -> bool:
    """Write cr's status through the status subresource if it differs from previous.

    A conflict means the Config changed underneath; the write is skipped and
    the next event for the Config recomputes the status.

    Returns:
        True if the status was written
    """
    status = cr.get("status") or {}
    if status == previous:
        return False
    try:
        generator.clients.configs.replace_status(copy.deepcopy(cr))
    except ApiException as e:
        if is_conflict(e):
            logger.info(f"Config {cr.get('metadata', {}).get('name')} changed while updating status, skipping")
            return False
        raise
    return True
