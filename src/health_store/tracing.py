"""OpenTelemetry tracing for the ingest and query paths.

Spans are opened around HTTP ingest (``http.ingest``) and every store unit of
work (``db.transaction``). The tracer provider built here is owned by
:class:`~health_store.main.HealthStoreService`, which flushes it on shutdown.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from opentelemetry import propagate, trace
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)

from . import __version__
from .config import TracingSettings

logger = structlog.get_logger(__name__)


def _span_exporter(settings: TracingSettings) -> SpanExporter:
    if settings.exporter == "console":
        return ConsoleSpanExporter(service_name=settings.service_name)
    if settings.otlp_endpoint:
        return OTLPSpanExporter(endpoint=settings.otlp_endpoint)
    return OTLPSpanExporter()


def build_tracer_provider(settings: TracingSettings) -> TracerProvider | None:
    """Build a provider for the configured exporter, or None when tracing is off."""
    if not settings.enabled or settings.exporter == "none":
        return None

    resource = Resource.create(
        {
            SERVICE_NAME: settings.service_name,
            SERVICE_VERSION: __version__,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(_span_exporter(settings)))
    return provider


def setup_tracing(settings: TracingSettings) -> TracerProvider | None:
    """Install the global tracer provider.

    Returns:
        The installed provider, to be passed to :func:`shutdown_tracing` on
        exit, or None when tracing is disabled.
    """
    provider = build_tracer_provider(settings)
    if provider is None:
        logger.info("tracing_disabled", exporter=settings.exporter, enabled=settings.enabled)
        return None

    trace.set_tracer_provider(provider)
    logger.info(
        "tracing_configured",
        exporter=settings.exporter,
        endpoint=settings.otlp_endpoint,
        service_name=settings.service_name,
        service_version=__version__,
    )
    return provider


def shutdown_tracing(provider: TracerProvider | None) -> None:
    """Flush pending spans and stop the exporter."""
    if provider is None:
        return
    provider.shutdown()
    logger.info("tracing_shutdown")


def extract_trace_context(headers: Mapping[str, str] | None) -> Context | None:
    """Return the W3C trace context carried by request headers, if any."""
    if not headers:
        return None
    return propagate.extract(headers)
