"""Main entry point for the Image Registry Operator.

Run with ``kopf run -m registry_operator.main``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .constants import API_GROUP
from .handlers.shared import get_generator
from .tracing import initialize_tracing
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure logging, tracing, kopf and the metrics endpoint."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Status is owned by the generator; keep kopf's bookkeeping in annotations.
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=API_GROUP)
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(prefix=API_GROUP)

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.watching.server_timeout = 300
    settings.execution.max_workers = int(os.getenv("MAX_WORKERS", "4"))

    port = int(os.getenv("METRICS_PORT", "8080"))
    health.start_metrics_server(port)
    logger.info(f"Serving metrics and probes on :{port}")


@kopf.on.startup()
def bootstrap(**_: Any) -> None:
    """Create the default Config and the ClusterOperator if they are missing."""
    try:
        get_generator().bootstrap()
    except Exception as e:
        raise kopf.TemporaryError(f"unable to bootstrap: {sanitize_exception(e)}", delay=10) from e
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()
