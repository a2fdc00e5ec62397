import logging
from typing import Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from cors_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


BODY_EVENT = "http.response.body"


def _is_body_chunk(span: ReadableSpan) -> bool:
    return bool(span.attributes) and span.attributes.get("asgi.event.type") == BODY_EVENT


class FilteringSpanExporter(SpanExporter):
    """Drops the per-chunk send spans a relayed body produces before export."""

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not _is_body_chunk(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def parse_otlp_headers(raw: str) -> dict:
    """Parse ``key=value,key2=value2`` into exporter headers."""
    headers = {}
    for entry in raw.split(","):
        if "=" not in entry:
            continue
        key, val = entry.split("=", 1)
        if key.strip():
            headers[key.strip()] = val.strip()
    return headers


def configure_tracing(
    service_name: str = SERVICE_NAME, otlp_endpoint: Optional[str] = OTLP_ENDPOINT
) -> TracerProvider:
    """Install the process-wide tracer provider, exporting via OTLP when configured."""
    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": service_name})
    )
    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(
            endpoint=otlp_endpoint,
            headers=parse_otlp_headers(OTLP_HEADERS) or None,
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )
        logger.info(f"Exporting traces to {otlp_endpoint}")
    trace.set_tracer_provider(tracer_provider)
    return tracer_provider


def instrument_app(app: FastAPI) -> None:
    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="",
        server_request_hook=None,
        client_request_hook=None,
    )
