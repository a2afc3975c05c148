"""MCP Tools for the Lifecycle Attribution dashboard.

Importing this package registers every tool with the shared FastMCP instance.
"""

# Filters
from .filters import (
    clear_channels,
    get_filters,
    reset_filters,
    select_all_channels,
    toggle_channel,
    update_date_range,
    update_segment,
)

# Dashboard data and cohorts
from .cohort_actions import activate_cohort
from .dashboard import get_dashboard_data, refresh_metrics

# Observability
from .execution_metrics import get_execution_metrics, reset_execution_metrics
from .health_check import health_check

__all__ = [
    # Filters
    "get_filters",
    "update_date_range",
    "toggle_channel",
    "select_all_channels",
    "clear_channels",
    "update_segment",
    "reset_filters",
    # Dashboard
    "get_dashboard_data",
    "refresh_metrics",
    "activate_cohort",
    # Observability
    "health_check",
    "get_execution_metrics",
    "reset_execution_metrics",
]
