"""
Lifecycle Attribution Dashboard MCP Server

This module provides the MCP server that exposes the filter-scoped metric
orchestration and cohort activation of the lifecycle attribution dashboard.
"""

import logging
import sys

import structlog

# Configure structlog to write to stderr, not stdout (to avoid interfering with MCP JSON protocol)
logging.basicConfig(
    format="%(message)s",
    stream=sys.stderr,
    level=logging.INFO,
)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

logger = structlog.get_logger(__name__)

# Import MCP server instance (must be imported before tools to avoid circular imports)
from analytics.services.lifecycle_mcp.instance import VERSION, mcp  # noqa: E402

# These imports MUST happen before mcp.run() is called
# Each module registers its tools using the @mcp.tool() decorator
from analytics.services.lifecycle_mcp import tools  # noqa: E402

logger.info(
    "mcp_server_initialized",
    version=VERSION,
    tools_registered=len(tools.__all__),
)


if __name__ == "__main__":
    mcp.run()
