import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from fastapi import FastAPI

from koda.core.config import settings


log = logging.getLogger(__name__)

# health checks would drown the traces
UNTRACED_URLS = "/v1/health"


def setup_telemetry(app: FastAPI) -> bool:
    """Trace requests and SQL. Returns False when telemetry is switched off."""
    if not settings.telemetry_enabled:
        log.info("telemetry disabled")
        return False

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "service.version": app.version,
                "deployment.environment": settings.env,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)
    # the engine only exists after the first request (koda.core.db),
    # so hook every engine instead of a specific one
    SQLAlchemyInstrumentor().instrument()
    log.info("telemetry exporting to %s", settings.otlp_endpoint)
    return True
