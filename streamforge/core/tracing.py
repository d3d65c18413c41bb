"""OpenTelemetry tracing for job attempts and processing stages.

Tracing is off unless the worker calls ``setup_tracing``; until then the
global no-op tracer is used and every helper here is safe to call.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

logger = logging.getLogger(__name__)

TRACER_NAME = "streamforge.processing"

_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str,
    service_version: str,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> TracerProvider:
    """Install a tracer provider for the worker process.

    Args:
        service_name: Reported ``service.name``
        service_version: Reported ``service.version``
        environment: Deployment environment
        otlp_endpoint: gRPC collector endpoint; spans are only exported if set
        console_export: Also print finished spans to stdout
    """
    global _provider

    _provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment,
    }))

    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning("OTLP exporter not installed, spans will not be exported")
        else:
            _provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
            logger.info(f"Exporting spans to {otlp_endpoint}")

    if console_export:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_provider)
    logger.info(f"Tracing initialized for {service_name} v{service_version}")
    return _provider


def shutdown_tracing() -> None:
    """Flush pending spans and stop exporting."""
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None


def _active_span() -> Optional[Span]:
    span = trace.get_current_span()
    if span.get_span_context().is_valid:
        return span
    return None


def get_trace_id() -> Optional[str]:
    span = _active_span()
    return format(span.get_span_context().trace_id, "032x") if span else None


def get_span_id() -> Optional[str]:
    span = _active_span()
    return format(span.get_span_context().span_id, "016x") if span else None


@contextmanager
def create_span(name: str, attributes: Optional[dict] = None) -> Iterator[Span]:
    """Run a block inside a new span, child of the current one."""
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name, attributes=attributes or {}) as span:
        yield span


def set_span_attributes(attributes: dict) -> None:
    span = _active_span()
    if span:
        span.set_attributes(attributes)


def mark_span_failed(description: str, exception: Optional[BaseException] = None) -> None:
    """Flag the current span as failed, recording the exception if there is one."""
    span = _active_span()
    if span is None:
        return
    if exception is not None:
        span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, description))
