"""Tracing setup for the API process.

Spans are only exported when ``OTEL_ENABLED`` is set; services open their
spans through :func:`domain_span` either way, which is a no-op under the
default proxy provider.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Span

from imobconnect.core.config import Settings, get_settings


TRACER_NAME = "imobconnect"

_provider: TracerProvider | None = None
_console_exporter_attached = False


def _tracer_provider() -> TracerProvider:
    global _provider

    if _provider is None:
        settings = get_settings()
        resource = Resource.create(
            {
                "service.name": settings.app_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.app_env,
            }
        )
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def configure_tracing(settings: Settings) -> TracerProvider | None:
    global _console_exporter_attached

    if not settings.otel_enabled:
        return None

    provider = _tracer_provider()
    if settings.otel_console_exporter and not _console_exporter_attached:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        _console_exporter_attached = True
    return provider


def attach_inmemory_exporter() -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _tracer_provider().add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def domain_span(name: str, attributes: dict[str, Any]) -> Iterator[Span]:
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def server_request_hook(span: Span | None, scope: dict[str, Any]) -> None:
    if span is None or not span.is_recording():
        return
    headers = dict(scope.get("headers", []))
    correlation_raw = headers.get(b"x-correlation-id") or headers.get(b"x-request-id")
    if correlation_raw:
        span.set_attribute("correlation_id", correlation_raw.decode("utf-8"))
