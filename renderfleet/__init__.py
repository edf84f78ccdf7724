"""renderfleet - Provision render worker fleets on AWS.

Example:

    from renderfleet import FleetConfig, FleetProvisioner, MachineImage, Size
    from renderfleet.aws import AWS, AWSClients

    provisioner = FleetProvisioner(AWSClients(AWS(region="us-west-2")))
    fleet = provisioner.provision(
        "RenderFleet",
        FleetConfig(
            vpc_id="vpc-0123",
            render_queue=render_queue,
            machine_image=MachineImage.generic_linux("ami-0123"),
            groups=("GPU", "cpu"),
            spot_price=0.8,
            block_device_volume_size=Size.gibibytes(100),
        ),
    )
"""

from renderfleet.config import FleetConfig, MachineImage, load_config, resolve_aws, resolve_fleet
from renderfleet.constants import OperatingSystemType
from renderfleet.exceptions import (
    ConfigurationError,
    InvalidCapacityError,
    InvalidRegionError,
    InvalidSpotPriceError,
    InvalidTagError,
    RenderFleetError,
    SizeConversionError,
)
from renderfleet.fleet import FleetProvisioner, WorkerFleet
from renderfleet.health import DEFAULT_HEALTH_CHECK_PORT, HealthCheckConfig
from renderfleet.logging import LogConfig, setup_logging, teardown_logging
from renderfleet.protocols import Fleet, HealthMonitor, RenderQueue
from renderfleet.scope import Scope
from renderfleet.size import Size

__all__ = [
    "DEFAULT_HEALTH_CHECK_PORT",
    "ConfigurationError",
    "Fleet",
    "FleetConfig",
    "FleetProvisioner",
    "HealthCheckConfig",
    "HealthMonitor",
    "InvalidCapacityError",
    "InvalidRegionError",
    "InvalidSpotPriceError",
    "InvalidTagError",
    "LogConfig",
    "MachineImage",
    "OperatingSystemType",
    "RenderFleetError",
    "RenderQueue",
    "Scope",
    "Size",
    "SizeConversionError",
    "WorkerFleet",
    "load_config",
    "resolve_aws",
    "resolve_fleet",
    "setup_logging",
    "teardown_logging",
]
