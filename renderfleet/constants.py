"""Centralized constants and enums for renderfleet.

All magic strings and tuning values are defined here so the builders,
wirers and tests agree on them.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Final

# =============================================================================
# AWS Resource Tags
# =============================================================================


class FleetTag(StrEnum):
    """AWS resource tag keys used by renderfleet."""

    MANAGED = "renderfleet:managed"
    FLEET_ID = "renderfleet:fleet-id"


# =============================================================================
# Operating Systems
# =============================================================================


class OperatingSystemType(StrEnum):
    """Operating system family of a worker image."""

    LINUX = "linux"
    WINDOWS = "windows"


# =============================================================================
# Scaling Group Defaults
# =============================================================================

DEFAULT_INSTANCE_TYPE: Final = "t2.large"
DEFAULT_MIN_CAPACITY: Final = 1
DEFAULT_VOLUME_SIZE_GIB: Final = 50
ROOT_DEVICE_NAME: Final = "/dev/xvda"

# Workers are health checked more often than the render manager's own
# resource tracker (every 5 minutes) so EC2 level issues surface quickly.
HEALTH_CHECK_GRACE_SECONDS: Final = 60

# Max time a single instance may take to launch and run its user data.
RESOURCE_SIGNAL_TIMEOUT_SECONDS: Final = 15 * 60

LAUNCH_HOOK_NAME: Final = "renderfleet-launch"
METRICS_GRANULARITY: Final = "1Minute"
CAPACITY_METRIC_NAMESPACE: Final = "AWS/AutoScaling"
CAPACITY_METRIC_NAME: Final = "GroupDesiredCapacity"
UPDATE_GROUP_ACTION: Final = "autoscaling:UpdateAutoScalingGroup"

# Seconds to wait for a freshly created group to become describable.
GROUP_VISIBLE_TIMEOUT: Final = 60

# =============================================================================
# Spot Pricing
# =============================================================================

SPOT_PRICE_MIN_LIMIT: Final = 0.001
SPOT_PRICE_MAX_LIMIT: Final = 255

# =============================================================================
# Logs
# =============================================================================

DEFAULT_LOG_GROUP_PREFIX: Final = "deadline"
DEFAULT_LOG_RETENTION_DAYS: Final = 3
LOG_FLUSH_INTERVAL_SECONDS: Final = 15

# =============================================================================
# Bootstrap
# =============================================================================

SCRIPTS_DIR: Final = Path(__file__).parent / "scripts"
WORKER_SCRIPT_BASE_NAME: Final = "configureWorker"
BOOTSTRAP_DIR: Final = "/opt/renderfleet"
WINDOWS_BOOTSTRAP_DIR: Final = "C:/ProgramData/renderfleet"
