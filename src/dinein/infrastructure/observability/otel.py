from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import (
    DEPLOYMENT_ENVIRONMENT,
    SERVICE_NAME,
    SERVICE_VERSION,
    Resource,
)
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

# Health checks and scrapes would otherwise dominate the trace volume.
UNTRACED_URLS = "/health/live,/health/ready,/metrics"

_configured_provider: TracerProvider | None = None


def _sample_ratio() -> float:
    raw_value = os.getenv("OTEL_TRACES_SAMPLE_RATIO", "1.0")
    try:
        ratio = float(raw_value)
    except ValueError:
        logger.warning("otel_bad_sample_ratio value=%s", raw_value)
        return 1.0
    return min(max(ratio, 0.0), 1.0)


def _build_provider() -> TracerProvider:
    resource = Resource.create(
        {
            SERVICE_NAME: os.getenv("OTEL_SERVICE_NAME", "dinein-backend"),
            SERVICE_VERSION: "0.1.0",
            DEPLOYMENT_ENVIRONMENT: os.getenv("APP_ENV", "dev"),
        }
    )
    provider = TracerProvider(resource=resource, sampler=ParentBasedTraceIdRatio(_sample_ratio()))

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return provider
    try:
        exporter = OTLPSpanExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))
    except Exception:
        # Tracing is optional; the API keeps serving without an exporter.
        logger.exception("otel_exporter_setup_failed")
        return provider
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def configure_otel(app: FastAPI) -> None:
    global _configured_provider
    if _configured_provider is None:
        _configured_provider = _build_provider()
        trace.set_tracer_provider(_configured_provider)
        set_global_textmap(TraceContextTextMapPropagator())

    FastAPIInstrumentor.instrument_app(
        app, tracer_provider=_configured_provider, excluded_urls=UNTRACED_URLS
    )
