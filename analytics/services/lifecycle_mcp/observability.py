"""OpenTelemetry setup for the dashboard MCP server.

Spans emitted by this service:
- ``reconcile_metrics``: one per filter change
- ``metric_fetch``: one per metric fetch, tagged with the metric and query key
- ``cohort_dispatch``: one per cohort handed to the activation sink

Without ``OTLP_ENDPOINT`` spans and metrics go to the console exporters.
"""

import structlog
from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio, TraceIdRatioBased

from analytics.services.lifecycle_mcp.instance import VERSION

logger = structlog.get_logger(__name__)

SERVICE_NAME = "mcp-lifecycle-dashboard"
CONSOLE_EXPORT_INTERVAL_MS = 5000
OTLP_EXPORT_INTERVAL_MS = 60000


def configure_observability(
    service_name: str = SERVICE_NAME,
    environment: str = "development",
    otlp_endpoint: str | None = None,
    sampling_rate: float = 1.0,
    data_mode: str = "synthetic",
):
    """
    Install the global tracer and meter providers.

    Args:
        service_name: ``service.name`` resource attribute
        environment: ``deployment.environment`` resource attribute
        otlp_endpoint: OTLP gRPC endpoint; None exports to the console
        sampling_rate: Trace sampling ratio (0.0-1.0)
        data_mode: ``synthetic`` or ``http``, recorded as ``dashboard.data_mode``
            so traces from development data are easy to filter out

    Returns:
        Tuple of (tracer, meter)
    """
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": VERSION,
            "deployment.environment": environment,
            "dashboard.data_mode": data_mode,
        }
    )

    trace_provider = TracerProvider(resource=resource, sampler=_create_sampler(sampling_rate))
    trace_provider.add_span_processor(BatchSpanProcessor(_span_exporter(otlp_endpoint)))
    trace.set_tracer_provider(trace_provider)

    metrics.set_meter_provider(
        MeterProvider(resource=resource, metric_readers=[_metric_reader(otlp_endpoint)])
    )

    logger.info(
        "observability_configured",
        service_name=service_name,
        environment=environment,
        data_mode=data_mode,
        otlp_endpoint=otlp_endpoint,
        sampling_rate=sampling_rate,
    )
    return trace.get_tracer(service_name), metrics.get_meter(service_name)


def _span_exporter(otlp_endpoint: str | None) -> SpanExporter:
    if otlp_endpoint is None:
        return ConsoleSpanExporter()
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    except ImportError as e:
        logger.warning(
            "otlp_exporter_not_available_falling_back_to_console",
            signal="traces",
            error=str(e),
            message="Install the 'otlp' extra for OTLP export",
        )
        return ConsoleSpanExporter()
    return OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)


def _metric_reader(otlp_endpoint: str | None) -> MetricReader:
    if otlp_endpoint is not None:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )
        except ImportError as e:
            logger.warning(
                "otlp_exporter_not_available_falling_back_to_console",
                signal="metrics",
                error=str(e),
                message="Install the 'otlp' extra for OTLP export",
            )
        else:
            return PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
                export_interval_millis=OTLP_EXPORT_INTERVAL_MS,
            )
    return PeriodicExportingMetricReader(
        ConsoleMetricExporter(), export_interval_millis=CONSOLE_EXPORT_INTERVAL_MS
    )


def _create_sampler(sampling_rate: float):
    """Sample nothing at 0, otherwise follow the parent with the given ratio."""
    if sampling_rate <= 0.0:
        return TraceIdRatioBased(0.0)
    return ParentBasedTraceIdRatio(min(sampling_rate, 1.0))
