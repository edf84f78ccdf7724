"""Health-check settings handed to a health monitor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

DEFAULT_HEALTH_CHECK_PORT: Final = 63415
"""Port the health monitor probes on each worker unless told otherwise."""


@dataclass(frozen=True, slots=True)
class HealthCheckConfig:
    """Health check settings for a monitored fleet.

    Only ``port`` is interpreted by renderfleet; the remaining fields are
    passed through to the health monitor unchanged. ``None`` means the
    monitor's own default applies.

    Args:
        port: Port the worker's health endpoint listens on.
        interval: Seconds between two health checks.
        instance_healthy_threshold_count: Consecutive successes before an
            instance is considered healthy.
        instance_unhealthy_threshold_count: Consecutive failures before an
            instance is considered unhealthy.
        healthy_fleet_threshold_percent: Percentage of healthy instances
            below which the whole fleet is considered unhealthy.
    """

    port: int | None = None
    interval: int | None = None
    instance_healthy_threshold_count: int | None = None
    instance_unhealthy_threshold_count: int | None = None
    healthy_fleet_threshold_percent: int | None = None
