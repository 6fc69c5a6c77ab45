"""OpenTelemetry tracing for apply, remove and storage passes.

Tracing is off unless ``OTEL_TRACES_ENABLED=true``. When off, every helper in
this module is a no-op so callers never need to check.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

logger = logging.getLogger(__name__)

SERVICE_NAME = "image-registry-operator"

_tracer: Tracer | None = None


def initialize_tracing() -> bool:
    """Install an OTLP span exporter if tracing is enabled.

    Environment Variables:
        OTEL_TRACES_ENABLED: "true" to export spans (default: false)
        OTEL_EXPORTER_OTLP_ENDPOINT: OTLP gRPC endpoint (default: http://localhost:4317)
        OTEL_SERVICE_NAME: Service name (default: image-registry-operator)
        OPERATOR_NAMESPACE: Added to the resource as ``k8s.namespace.name``

    Returns:
        True if a tracer was installed
    """
    global _tracer

    if os.getenv("OTEL_TRACES_ENABLED", "false").lower() != "true":
        return False

    service_name = os.getenv("OTEL_SERVICE_NAME", SERVICE_NAME)
    resource_attributes = {"service.name": service_name}
    namespace = os.getenv("OPERATOR_NAMESPACE")
    if namespace:
        resource_attributes["k8s.namespace.name"] = namespace

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    try:
        provider = TracerProvider(resource=Resource.create(resource_attributes))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
    except Exception as e:
        # Tracing is optional.
        logger.warning(f"Failed to initialize tracing: {e}")
        return False

    _tracer = trace.get_tracer(service_name)
    logger.info(f"Exporting traces to {endpoint} as {service_name}")
    return True


def get_tracer() -> Tracer | None:
    return _tracer


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Run the body inside a span.

    Args:
        name: Span name, e.g. ``generator.apply``
        kind: Kind of the object the span is about, stored as ``k8s.kind``
        attributes: Extra span attributes; None values are dropped

    Yields:
        The span, or None when tracing is off
    """
    tracer = get_tracer()
    if tracer is None:
        yield None
        return

    attrs = {key: value for key, value in (attributes or {}).items() if value is not None}
    if kind:
        attrs["k8s.kind"] = kind

    with tracer.start_as_current_span(
        name, attributes=attrs, record_exception=False, set_status_on_exception=False
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, type(e).__name__))
            raise


def annotate_span(**attributes: Any) -> None:
    """Set attributes on the current span, if one is recording."""
    if get_tracer() is None:
        return
    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        span.set_attribute(key.replace("_", "."), value)
