from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)

from .config import Settings, settings


def configure_tracing(
    cfg: Settings = settings, exporter: Optional[SpanExporter] = None
) -> TracerProvider:
    """Install the global tracer provider used for backend request spans.

    Without an explicit exporter, spans are shipped in batches to the OTLP
    collector at ``cfg.otel_exporter_otlp_endpoint``. An explicit exporter
    receives every span as soon as it ends.
    """
    resource = Resource.create(
        {
            "service.name": cfg.otel_service_name,
            "deployment.environment": cfg.app_environment,
        }
    )
    provider = TracerProvider(resource=resource)
    if exporter is None:
        otlp = OTLPSpanExporter(endpoint=cfg.otel_exporter_otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp))
    else:
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    return provider
