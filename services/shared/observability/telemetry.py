"""
Logging and tracing bootstrap for the budget ledger service.

`configure_logging` installs a JSON formatter whose records carry the service name,
the inbound request id and the active sync id. `setup_telemetry` does the same for a
FastAPI app and, when ENABLE_TELEMETRY is set, wires OpenTelemetry tracing plus
FastAPI/httpx/logging instrumentation.
"""

from __future__ import annotations

import logging
import os
from contextvars import ContextVar, Token
from uuid import uuid4

from fastapi import FastAPI, Request
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, SpanContext
from pythonjsonlogger import jsonlogger

CORRELATION_ID_HEADER = "x-request-id"
LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "%(trace_id)s %(span_id)s %(service_name)s %(request_id)s %(sync_id)s"
)
ContextToken = Token

_httpx_instrumented = False
_logging_configured = False
_request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_sync_id_ctx_var: ContextVar[str | None] = ContextVar("sync_id", default=None)


def setup_telemetry(app: FastAPI, service_name: str) -> None:
    """
    Configure logging (always) and tracing (opt-in) for the provided FastAPI app.
    """

    enable_traces = _parse_bool(os.getenv("ENABLE_TELEMETRY", "false"))
    service_label = os.getenv("OTEL_SERVICE_NAME", service_name)

    configure_logging(service_label, traces_enabled=enable_traces)

    if enable_traces:
        _configure_tracing(service_label, _parse_bool(os.getenv("OTEL_CONSOLE_EXPORT", "false")))
        FastAPIInstrumentor.instrument_app(app)
        _instrument_httpx()
        LoggingInstrumentor().instrument(set_logging_format=False)


def configure_logging(service_name: str, *, traces_enabled: bool = False, level: int = logging.INFO) -> None:
    """Install the JSON log handler once per process."""

    global _logging_configured
    if _logging_configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    handler.addFilter(_TelemetryLogFilter(service_name, traces_enabled))

    logging.basicConfig(level=level, handlers=[handler], force=True)
    _logging_configured = True


def ensure_request_id(request: Request | None, header_name: str = CORRELATION_ID_HEADER) -> str:
    """Reuse the inbound x-request-id (or one already on request.state), else mint a UUID4."""

    if request is not None:
        existing = request.headers.get(header_name) or getattr(request.state, "request_id", None)
        if existing:
            request.state.request_id = existing
            return existing

    request_id = str(uuid4())
    if request is not None:
        request.state.request_id = request_id
    return request_id


def bind_request_context(request_id: str | None) -> ContextToken:
    return _request_id_ctx_var.set(request_id)


def reset_request_context(token: ContextToken | None) -> None:
    if token is not None:
        _request_id_ctx_var.reset(token)


def bind_sync_context(sync_id: str | None) -> ContextToken:
    """Tag every log record emitted during a sync pass with its id."""
    return _sync_id_ctx_var.set(sync_id)


def reset_sync_context(token: ContextToken | None) -> None:
    if token is not None:
        _sync_id_ctx_var.reset(token)


def current_request_id() -> str | None:
    return _request_id_ctx_var.get()


def _configure_tracing(service_name: str, enable_console_export: bool) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        # Already configured globally.
        return

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    exporter = OTLPSpanExporter(endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318/v1/traces"))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


def _instrument_httpx() -> None:
    global _httpx_instrumented
    if _httpx_instrumented:
        return
    HTTPXClientInstrumentor().instrument()
    _httpx_instrumented = True


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class _TelemetryLogFilter(logging.Filter):
    def __init__(self, service_name: str, traces_enabled: bool) -> None:
        super().__init__()
        self._service_name = service_name
        self._traces_enabled = traces_enabled

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.service_name = self._service_name
        record.request_id = _request_id_ctx_var.get()
        record.sync_id = _sync_id_ctx_var.get()
        record.trace_id = None
        record.span_id = None

        if self._traces_enabled:
            span = trace.get_current_span()
            span_context = span.get_span_context() if isinstance(span, Span) else None
            if isinstance(span_context, SpanContext) and span_context.is_valid:
                record.trace_id = format(span_context.trace_id, "032x")
                record.span_id = format(span_context.span_id, "016x")
        return True
