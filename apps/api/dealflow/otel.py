from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from dealflow.core.config import Settings


_configured = False
_provider: TracerProvider | None = None


def _get_or_create_provider(service_name: str, environment: str = "local") -> TracerProvider:
    global _provider

    if _provider is not None:
        return _provider

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": "0.1.0",
            "deployment.environment": environment,
        }
    )
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def setup_otel(settings: Settings) -> TracerProvider | None:
    global _configured

    if not settings.otel_enabled:
        return None

    provider = _get_or_create_provider(settings.otel_service_name, settings.app_env)
    if _configured:
        return provider

    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))

    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _configured = True
    return provider


def setup_inmemory_otel(service_name: str = "dealflow-api") -> InMemorySpanExporter:
    provider = _get_or_create_provider(service_name, "test")
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def annotate(span: trace.Span, **attributes: Any) -> None:
    """Set span attributes, skipping unset values and stringifying ids and enums."""
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, uuid.UUID) or not isinstance(value, (str, bool, int, float)):
            value = str(value)
        span.set_attribute(key, value)


def get_fastapi_server_request_hook():
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        correlation_raw = headers.get(b"x-correlation-id")
        if correlation_raw:
            annotate(span, correlation_id=correlation_raw.decode("utf-8"))

    return server_request_hook
