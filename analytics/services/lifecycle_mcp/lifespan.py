"""Server lifespan: startup and shutdown of the dashboard resources.

Imports are deferred to call time so the FastMCP instance can be created
before any tool or session module is loaded.
"""

from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def app_lifespan(app):
    """Initialize and clean up server resources.

    Startup: observability, Prometheus exposition server, dashboard session
    (which immediately fetches every metric for the default filters).
    Shutdown: cancel in-flight fetches and wait for pending dispatches.
    """
    from analytics.services.lifecycle_mcp.config import DashboardSettings
    from analytics.services.lifecycle_mcp.instance import VERSION
    from analytics.services.lifecycle_mcp.metrics import start_metrics_server
    from analytics.services.lifecycle_mcp.observability import configure_observability
    from analytics.services.lifecycle_mcp.session import close_session, start_session

    settings = DashboardSettings.from_env()
    logger.info(
        "mcp_server_starting",
        version=VERSION,
        synthetic_data=settings.uses_synthetic_data,
        action_sink=settings.action_sink_url or "log",
    )

    configure_observability(
        environment=settings.environment,
        otlp_endpoint=settings.otlp_endpoint,
        sampling_rate=settings.sampling_rate,
        data_mode="synthetic" if settings.uses_synthetic_data else "http",
    )

    try:
        start_metrics_server(port=settings.metrics_port)
    except RuntimeError as e:
        # Server already running (e.g., during hot reload)
        logger.warning("prometheus_metrics_server_already_running", error=str(e))
    except OSError as e:
        logger.error(
            "prometheus_metrics_server_failed", error=str(e), port=settings.metrics_port
        )

    start_session(settings)

    try:
        yield
    finally:
        logger.info("mcp_server_stopping")
        await close_session()
