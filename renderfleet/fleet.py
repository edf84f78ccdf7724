"""Render worker fleets.

A fleet is an Auto Scaling group of instances launched from an AMI that has
the render client installed. Whenever an instance starts, it connects to the
render queue and joins the configured groups, pools and region.

Resources created per fleet:
    1. An Auto Scaling group with a launch template and a security group.
    2. An instance role, instance profile and scoped policies.
    3. A worker configuration script uploaded to the asset bucket.
    4. A CloudWatch log group and agent configuration.

The instance role can read the uploaded script; the fleet's security group
can reach the render queue on its default port.

Example:
    from injector import Injector
    from renderfleet import FleetConfig, FleetProvisioner, MachineImage
    from renderfleet.aws import AWS, AWSModule

    provisioner = Injector([AWSModule(AWS(region="us-west-2"))]).get(FleetProvisioner)
    fleet = provisioner.provision(
        "RenderFleet",
        FleetConfig(
            vpc_id="vpc-0123",
            render_queue=queue,
            machine_image=MachineImage.generic_linux("ami-0123"),
            groups=("gpu",),
        ),
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from injector import inject
from loguru import logger

from renderfleet.aws.clients import AWSClients
from renderfleet.aws.scaling_group import ScalingGroupBuilder
from renderfleet.bootstrap import BootstrapComposer
from renderfleet.observability import ObservabilityWirer
from renderfleet.scope import Scope
from renderfleet.validation import validate_config

if TYPE_CHECKING:
    from renderfleet.aws.iam import ManagedPolicy, Role
    from renderfleet.aws.metrics import Metric
    from renderfleet.aws.network import Connections
    from renderfleet.aws.scaling_group import ScalingGroup
    from renderfleet.config import FleetConfig


class WorkerFleet:
    """A provisioned fleet of render workers.

    Implements the ``Fleet`` protocol consumed by health monitors.
    """

    def __init__(self, scope: Scope, group: ScalingGroup) -> None:
        self._scope = scope
        self._group = group
        self._capacity_metric = group.capacity_metric()

    @property
    def fleet(self) -> ScalingGroup:
        """The Auto Scaling group backing this fleet."""
        return self._group

    @property
    def connections(self) -> Connections:
        return self._group.connections

    @property
    def grant_principal(self) -> Role:
        return self._group.grant_principal

    @property
    def target_capacity_metric(self) -> Metric:
        """Base capacity the healthy percentage is computed against."""
        return self._capacity_metric

    @property
    def target_to_monitor(self) -> ScalingGroup:
        """Attachable to a network load balancer target group."""
        return self._group

    @property
    def target_update_policy(self) -> ManagedPolicy:
        """Lets whoever holds it suspend the fleet by updating its capacity."""
        return self._group.update_policy

    @property
    def target_capacity(self) -> int:
        """Maximum number of instances, as reported by Auto Scaling."""
        return self._group.max_size

    @property
    def target_scope(self) -> Scope:
        """Scope for monitoring resources such as target groups and listeners."""
        return self._scope

    @property
    def warnings(self) -> list[str]:
        return self._scope.warnings

    def add_security_group(self, security_group_id: str) -> None:
        """Add a security group to all workers."""
        self._group.add_security_group(security_group_id)


class FleetProvisioner:
    """Validates a FleetConfig and provisions the fleet it describes."""

    @inject
    def __init__(self, clients: AWSClients) -> None:
        self.clients = clients
        self.scaling_groups = ScalingGroupBuilder(clients)
        self.observability = ObservabilityWirer(clients)
        self.bootstrap = BootstrapComposer(clients)

    def provision(self, fleet_id: str, config: FleetConfig, parent: Scope | None = None) -> WorkerFleet:
        """Provision a fleet.

        Raises:
            ConfigurationError: Before any resource is created, if the
                configuration is invalid.
            botocore.exceptions.ClientError: If an AWS call fails.
        """
        validate_config(config)
        scope = parent.child(fleet_id) if parent is not None else Scope(fleet_id)
        log = logger.bind(component="fleet", fleet_id=scope.path)
        log.info("Provisioning fleet in {vpc}", vpc=config.vpc_id)

        group = self.scaling_groups.build(config, scope)
        fleet = WorkerFleet(scope, group)
        self.observability.wire(group, fleet_id, config.log_group_props)
        self.bootstrap.compose(fleet, config)
        group.activate()

        log.info("Fleet ready: {group} (max {max})", group=group.name, max=fleet.target_capacity)
        return fleet
