import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from .config import settings

logger = logging.getLogger(__name__)

_tracer_provider = None

def setup_tracing():
    """Installs the OTLP-exporting TracerProvider when tracing is enabled."""
    global _tracer_provider
    if _tracer_provider or not settings.OTEL_ENABLED:
        return

    try:
        resource = Resource(attributes={
            SERVICE_NAME: settings.OTEL_SERVICE_NAME
        })

        _tracer_provider = TracerProvider(resource=resource)
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.OTLP_ENDPOINT,
            insecure=settings.OTLP_INSECURE
        )
        _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        trace.set_tracer_provider(_tracer_provider)

        logger.info(f"OpenTelemetry tracing initialized for service '{settings.OTEL_SERVICE_NAME}', exporting to {settings.OTLP_ENDPOINT}")

    except Exception as e:
        logger.exception(f"Failed to initialize OpenTelemetry tracing: {e}")
        _tracer_provider = None

def get_tracer():
    """
    Returns a tracer bound to the global provider.

    Safe to call at import time: spans become real once `setup_tracing`
    installs a provider, and are no-ops before that.
    """
    return trace.get_tracer(settings.OTEL_SERVICE_NAME)

async def shutdown_tracing():
    """Shuts down the tracer provider gracefully."""
    global _tracer_provider
    if _tracer_provider and hasattr(_tracer_provider, 'shutdown'):
        logger.info("Shutting down OpenTelemetry tracer provider...")
        _tracer_provider.shutdown()
        _tracer_provider = None
        logger.info("OpenTelemetry tracer provider shut down.")
