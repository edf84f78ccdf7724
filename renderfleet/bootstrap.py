"""Worker boot sequence: health monitoring, queue connection, worker script.

Arguments handed to the worker script are derived purely from the fleet
configuration, so identical configurations always produce identical
user data.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from renderfleet.aws.assets import ScriptAsset
from renderfleet.constants import SCRIPTS_DIR, WORKER_SCRIPT_BASE_NAME
from renderfleet.health import DEFAULT_HEALTH_CHECK_PORT, HealthCheckConfig

if TYPE_CHECKING:
    from renderfleet.aws.clients import AWSClients
    from renderfleet.config import FleetConfig
    from renderfleet.fleet import WorkerFleet

log = logger.bind(component="bootstrap")


def resolve_health_check_port(config: FleetConfig) -> int:
    if config.health_check_config and config.health_check_config.port:
        return config.health_check_config.port
    return DEFAULT_HEALTH_CHECK_PORT


def _quote(value: str) -> str:
    return f"'{value}'"


def worker_script_args(config: FleetConfig, health_check_port: int) -> list[str]:
    """Positional arguments of the worker configuration script.

    Groups and pools are lower-cased: the render manager stores them that way.
    """
    groups = ",".join(g.lower() for g in config.groups)
    pools = ",".join(p.lower() for p in config.pools)
    return [
        _quote(str(health_check_port)),
        _quote(groups),
        _quote(pools),
        _quote(config.region or ""),
    ]


class BootstrapComposer:
    """Extends a fleet's user data with everything a worker runs at boot."""

    def __init__(self, clients: AWSClients, scripts_dir: Path = SCRIPTS_DIR) -> None:
        self.clients = clients
        self.scripts_dir = scripts_dir

    def compose(self, fleet: WorkerFleet, config: FleetConfig) -> None:
        group = fleet.fleet
        port = resolve_health_check_port(config)

        self._configure_health_monitor(fleet, config, port)

        config.render_queue.configure_client_instance(host=group)

        script = ScriptAsset.from_path_convention(
            self.clients,
            group.os_type,
            WORKER_SCRIPT_BASE_NAME,
            self.scripts_dir,
        )
        script.execute_on(group, worker_script_args(config, port))

        group.user_data.add_signal_on_exit_command(group)
        log.debug("Composed boot sequence for {group}", group=group.name)

    @staticmethod
    def _configure_health_monitor(fleet: WorkerFleet, config: FleetConfig, port: int) -> None:
        if config.health_monitor is not None:
            config.health_monitor.register_fleet(
                fleet,
                config.health_check_config or HealthCheckConfig(port=port),
            )
            return
        fleet.target_scope.add_warning(
            f"The worker-fleet {fleet.target_scope.id} is being created without a health monitor "
            "attached to it. This means that the fleet will not automatically scale-in to 0 "
            "if the workers are unhealthy."
        )
