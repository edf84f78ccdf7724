"""Fleet configuration and TOML-based loading.

Loads ~/.renderfleet/defaults.toml (global) and renderfleet.toml (project),
merges them, and resolves named fleets into FleetConfig instances.

Example renderfleet.toml::

    [aws]
    region = "us-west-2"

    [fleets.render]
    vpc_id = "vpc-0123"
    image_id = "ami-0123"
    os_type = "linux"
    max_capacity = 10
    groups = ["gpu"]
    block_device_volume_size = "100GiB"

    [fleets.render.health_check]
    port = 9999

    [fleets.render.log_group]
    log_group_prefix = "/renderfarm/"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any

from renderfleet.aws.config import AWS
from renderfleet.aws.logs import LogGroupProps
from renderfleet.aws.network import SubnetSelection, SubnetType
from renderfleet.constants import DEFAULT_MIN_CAPACITY, OperatingSystemType
from renderfleet.health import HealthCheckConfig
from renderfleet.size import Size

if TYPE_CHECKING:
    from renderfleet.protocols import HealthMonitor, RenderQueue

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".renderfleet" / "defaults.toml"
PROJECT_CONFIG_NAME = "renderfleet.toml"


@dataclass(frozen=True, slots=True)
class MachineImage:
    """Worker AMI and the operating system family it runs."""

    image_id: str
    os_type: OperatingSystemType = OperatingSystemType.LINUX

    @classmethod
    def generic_linux(cls, image_id: str) -> MachineImage:
        return cls(image_id, OperatingSystemType.LINUX)

    @classmethod
    def generic_windows(cls, image_id: str) -> MachineImage:
        return cls(image_id, OperatingSystemType.WINDOWS)


@dataclass(frozen=True, slots=True)
class FleetConfig:
    """Configuration of a render worker fleet.

    Args:
        vpc_id: VPC to launch the fleet in.
        render_queue: Render queue the workers connect to.
        machine_image: AMI of the worker; must have the render client installed.
        vpc_subnets: Where to place instances. Default: private subnets.
        security_group_id: Extra security group for the workers. A default
            group is always created.
        role_name: Existing IAM role, assumable by ``ec2.amazonaws.com``.
            Default: a role is created.
        instance_type: EC2 instance type. Default: t2.large.
        key_name: SSH key pair. Default: no SSH access.
        min_capacity: Minimum number of workers.
        max_capacity: Maximum number of workers. Default: desired_capacity,
            else min_capacity (at least 1).
        desired_capacity: Initial number of workers. Leaving it unset is
            recommended; every provisioning would reset the fleet to it.
        groups: Render manager groups the workers join.
        pools: Render manager pools the workers join.
        region: Render manager region the workers belong to.
        spot_price: Max hourly price per spot instance. Default: on-demand.
        block_device_volume_size: Root volume size. Default: 50 GiB.
        health_monitor: Monitor that scales the fleet to zero when unhealthy.
        health_check_config: Settings passed to the health monitor.
        log_group_props: Log group settings. Default prefix: "deadline".
    """

    vpc_id: str
    render_queue: RenderQueue
    machine_image: MachineImage
    vpc_subnets: SubnetSelection | None = None
    security_group_id: str | None = None
    role_name: str | None = None
    instance_type: str | None = None
    key_name: str | None = None
    min_capacity: int = DEFAULT_MIN_CAPACITY
    max_capacity: int | None = None
    desired_capacity: int | None = None
    groups: tuple[str, ...] = ()
    pools: tuple[str, ...] = ()
    region: str | None = None
    spot_price: float | Decimal | None = None
    block_device_volume_size: Size | None = None
    health_monitor: HealthMonitor | None = None
    health_check_config: HealthCheckConfig | None = None
    log_group_props: LogGroupProps | None = None

    @property
    def effective_max_capacity(self) -> int:
        if self.max_capacity is not None:
            return self.max_capacity
        if self.desired_capacity is not None:
            return self.desired_capacity
        return max(self.min_capacity, 1)


# =============================================================================
# TOML Loading
# =============================================================================


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("aws", {})
    merged.setdefault("fleets", {})
    return merged


def resolve_aws(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> AWS:
    config = load_config(project_dir=project_dir, global_path=global_path)
    return AWS(**config["aws"])


def _build_subnets(raw: RawConfig) -> SubnetSelection:
    raw = dict(raw)
    if "subnet_ids" in raw:
        raw["subnet_ids"] = tuple(raw["subnet_ids"])
    if "subnet_type" in raw:
        raw["subnet_type"] = SubnetType(raw["subnet_type"])
    return SubnetSelection(**raw)


def _build_fleet(name: str, raw: RawConfig, **collaborators: Any) -> FleetConfig:
    raw = dict(raw)

    image_id = raw.pop("image_id", None)
    if image_id is None:
        raise ValueError(f"Fleet '{name}' missing 'image_id' field")
    os_type = OperatingSystemType(raw.pop("os_type", OperatingSystemType.LINUX))

    if "vpc_id" not in raw:
        raise ValueError(f"Fleet '{name}' missing 'vpc_id' field")

    if (subnets := raw.pop("subnets", None)) is not None:
        raw["vpc_subnets"] = _build_subnets(subnets)
    if (health := raw.pop("health_check", None)) is not None:
        raw["health_check_config"] = HealthCheckConfig(**health)
    if (log_group := raw.pop("log_group", None)) is not None:
        raw["log_group_props"] = LogGroupProps(**log_group)
    if (size := raw.get("block_device_volume_size")) is not None:
        raw["block_device_volume_size"] = Size.parse(size) if isinstance(size, str) else Size.gibibytes(size)
    if (price := raw.get("spot_price")) is not None:
        raw["spot_price"] = Decimal(str(price))
    for key in ("groups", "pools"):
        if key in raw:
            raw[key] = tuple(raw[key])

    return FleetConfig(machine_image=MachineImage(image_id, os_type), **raw, **collaborators)


def resolve_fleet(
    name: str,
    *,
    render_queue: RenderQueue,
    health_monitor: HealthMonitor | None = None,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> FleetConfig:
    """Build the FleetConfig of the ``[fleets.<name>]`` table.

    The render queue and health monitor are live objects and cannot be
    expressed in TOML; they are passed in.
    """
    config = load_config(project_dir=project_dir, global_path=global_path)

    fleets = config["fleets"]
    if name not in fleets:
        raise KeyError(f"Fleet '{name}' not found. Available: {', '.join(fleets) or 'none'}")

    return _build_fleet(
        name,
        fleets[name],
        render_queue=render_queue,
        health_monitor=health_monitor,
    )
