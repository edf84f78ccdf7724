"""Protocol definitions for renderfleet collaborators.

The render queue and the health monitor live outside this package; they are
consumed only through the protocols below. ``Fleet`` is the capability set
produced by provisioning, so that a health monitor can be written against it
without depending on ``WorkerFleet``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from renderfleet.aws.iam import ManagedPolicy, Role
    from renderfleet.aws.metrics import Metric
    from renderfleet.aws.network import Connections
    from renderfleet.aws.scaling_group import ScalingGroup
    from renderfleet.aws.user_data import UserData
    from renderfleet.constants import OperatingSystemType
    from renderfleet.health import HealthCheckConfig
    from renderfleet.scope import Scope

__all__ = [
    "Connectable",
    "ClientHost",
    "RenderQueue",
    "HealthMonitor",
    "Fleet",
]


@runtime_checkable
class Connectable(Protocol):
    """Anything that owns security groups and can be connected to."""

    @property
    def connections(self) -> Connections: ...


@runtime_checkable
class ClientHost(Connectable, Protocol):
    """A host whose boot sequence collaborators may extend.

    Implemented by ``ScalingGroup``.
    """

    @property
    def os_type(self) -> OperatingSystemType: ...

    @property
    def user_data(self) -> UserData: ...

    @property
    def role(self) -> Role: ...


@runtime_checkable
class RenderQueue(Connectable, Protocol):
    """The central job-dispatch endpoint workers connect to.

    ``connections.default_port`` is the port workers are allowed to reach.
    """

    def configure_client_instance(self, host: ClientHost) -> None:
        """Inject the queue's connection material into the host's boot sequence."""
        ...


@runtime_checkable
class HealthMonitor(Protocol):
    """External subsystem that can scale an unhealthy fleet to zero."""

    def register_fleet(self, fleet: Fleet, health_check_config: HealthCheckConfig) -> None:
        """Start monitoring ``fleet``."""
        ...


@runtime_checkable
class Fleet(Connectable, Protocol):
    """A provisioned, monitorable worker fleet."""

    @property
    def grant_principal(self) -> Role: ...

    @property
    def fleet(self) -> ScalingGroup: ...

    @property
    def target_capacity_metric(self) -> Metric: ...

    @property
    def target_to_monitor(self) -> ScalingGroup: ...

    @property
    def target_update_policy(self) -> ManagedPolicy: ...

    @property
    def target_capacity(self) -> int: ...

    @property
    def target_scope(self) -> Scope: ...

    def add_security_group(self, security_group_id: str) -> None: ...
