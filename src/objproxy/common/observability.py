"""Logging and tracing setup for the object proxy."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.asgi import OpenTelemetryMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from structlog.contextvars import bind_contextvars

from .settings import ProxySettings


SERVICE_NAME = "objproxy"

_logging_configured = False
_tracer_configured = False


def resolve_log_level(level: str | int | None) -> int:
    """Map a level name such as ``WARN`` or ``debug`` to its number, defaulting to INFO."""

    if isinstance(level, int):
        return level
    if level:
        numeric = logging.getLevelName(level.strip().upper())
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.processors.dict_tracebacks,
        structlog.processors.EventRenamer("message"),
    ]


def configure_logging(
    service_name: str = SERVICE_NAME,
    level: str | int | None = None,
    log_format: str = "json",
) -> None:
    global _logging_configured
    numeric_level = resolve_log_level(level)
    if _logging_configured:
        logging.getLogger().setLevel(numeric_level)
    else:
        logging.basicConfig(level=numeric_level, format="%(message)s")
        _logging_configured = True

    if log_format.strip().lower() == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    bind_contextvars(service=service_name)


def parse_otlp_headers(headers: str | None) -> Dict[str, str]:
    """Turn ``k1=v1,k2=v2`` into a header mapping, skipping malformed items."""

    result: Dict[str, str] = {}
    for item in (headers or "").split(","):
        key, _, value = item.partition("=")
        if key.strip() and value.strip():
            result[key.strip()] = value.strip()
    return result


def _span_processor(endpoint: Optional[str], headers: Optional[str]):
    if endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=parse_otlp_headers(headers)))
    return SimpleSpanProcessor(InMemorySpanExporter())


def configure_tracing(
    service_name: str = SERVICE_NAME,
    endpoint: Optional[str] = None,
    headers: Optional[str] = None,
    sampler_ratio: float = 1.0,
) -> None:
    """Install a tracer provider once per process.

    Spans are exported over OTLP/HTTP when ``endpoint`` is set and kept in
    memory otherwise. A provider installed by someone else is left alone.
    """

    global _tracer_configured
    if _tracer_configured or isinstance(trace.get_tracer_provider(), TracerProvider):
        _tracer_configured = True
        return

    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name}),
        sampler=TraceIdRatioBased(max(0.0, min(1.0, sampler_ratio))),
    )
    provider.add_span_processor(_span_processor(endpoint, headers))
    trace.set_tracer_provider(provider)
    _tracer_configured = True


def configure_observability(settings: ProxySettings) -> None:
    configure_logging(SERVICE_NAME, settings.log_level, settings.log_format)
    configure_tracing(
        service_name=SERVICE_NAME,
        endpoint=settings.otel_exporter_endpoint,
        headers=settings.otel_exporter_headers,
        sampler_ratio=settings.otel_sampler_ratio,
    )


def instrument_fastapi_app(app) -> None:
    provider = trace.get_tracer_provider()
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    if not any(getattr(m.cls, "__name__", "") == "OpenTelemetryMiddleware" for m in app.user_middleware):
        app.add_middleware(OpenTelemetryMiddleware, tracer_provider=provider)
