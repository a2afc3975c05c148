"""Runtime configuration for the Lifecycle Attribution MCP server.

All settings are read from environment variables once at session start.
Leaving ``LIFECYCLE_API_BASE_URL`` unset switches every metric to the
synthetic development generators; leaving ``ACTION_SINK_URL`` unset makes the
action dispatcher log cohorts instead of posting them.
"""

import os

from pydantic import BaseModel, Field


class DashboardSettings(BaseModel):
    """Settings for metric fetching, caching, dispatch and observability."""

    api_base_url: str | None = Field(
        default=None,
        description="Base URL of the lifecycle analytics API (None = synthetic data)",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Upper bound for a single metric fetch"
    )
    cache_max_keys: int = Field(
        default=8, ge=1, description="Query keys retained per metric in the result cache"
    )
    cache_ttl_seconds: int = Field(
        default=900, ge=1, description="Time-to-live for cached metric results"
    )
    synthetic_latency_seconds: float = Field(
        default=0.5, ge=0, description="Simulated network delay for synthetic data"
    )
    action_sink_url: str | None = Field(
        default=None,
        description="Webhook receiving activated cohorts (None = log sink)",
    )
    action_sink_timeout_seconds: float = Field(default=10.0, gt=0)
    environment: str = Field(default="development")
    otlp_endpoint: str | None = Field(default=None)
    sampling_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    metrics_port: int = Field(default=8000)

    @classmethod
    def from_env(cls) -> "DashboardSettings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ
        values: dict[str, object] = {
            "api_base_url": env.get("LIFECYCLE_API_BASE_URL") or None,
            "action_sink_url": env.get("ACTION_SINK_URL") or None,
            "otlp_endpoint": env.get("OTLP_ENDPOINT") or None,
            "environment": env.get("ENVIRONMENT", "development"),
        }
        numeric = {
            "fetch_timeout_seconds": "FETCH_TIMEOUT_SECONDS",
            "cache_max_keys": "CACHE_MAX_KEYS",
            "cache_ttl_seconds": "CACHE_TTL_SECONDS",
            "synthetic_latency_seconds": "SYNTHETIC_LATENCY_SECONDS",
            "action_sink_timeout_seconds": "ACTION_SINK_TIMEOUT_SECONDS",
            "sampling_rate": "SAMPLING_RATE",
            "metrics_port": "PROMETHEUS_METRICS_PORT",
        }
        for field_name, var in numeric.items():
            if env.get(var):
                values[field_name] = env[var]
        return cls(**values)

    @property
    def uses_synthetic_data(self) -> bool:
        return self.api_base_url is None
