"""Ships worker logs to CloudWatch.

Every instance of a fleet runs the CloudWatch agent, which tails the render
client's logs and the boot log into one log group per fleet.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Final

from loguru import logger

from renderfleet.aws.cloudwatch_agent import CloudWatchAgent, CloudWatchConfigBuilder
from renderfleet.aws.logs import LogGroupFactory, LogGroupProps
from renderfleet.constants import DEFAULT_LOG_GROUP_PREFIX, LOG_FLUSH_INTERVAL_SECONDS

if TYPE_CHECKING:
    from renderfleet.aws.clients import AWSClients
    from renderfleet.aws.scaling_group import ScalingGroup

# (stream prefix, file path) for both Windows and Linux workers.
WORKER_LOG_FILES: Final = (
    ("UserdataExecution", "C:\\ProgramData\\Amazon\\EC2-Windows\\Launch\\Log\\UserdataExecution.log"),
    ("WorkerLogs", "C:\\ProgramData\\Thinkbox\\Deadline10\\logs\\deadlineslave*.log"),
    ("LauncherLogs", "C:\\ProgramData\\Thinkbox\\Deadline10\\logs\\deadlinelauncher*.log"),
    ("cloud-init-output", "/var/log/cloud-init-output.log"),
    ("WorkerLogs", "/var/log/Thinkbox/Deadline10/deadlineslave*.log"),
    ("LauncherLogs", "/var/log/Thinkbox/Deadline10/deadlinelauncher*.log"),
)


def defaulted_log_group_props(props: LogGroupProps | None) -> LogGroupProps:
    """Fill in the fleet's default log group prefix."""
    props = props or LogGroupProps()
    if props.log_group_prefix:
        return props
    return replace(props, log_group_prefix=DEFAULT_LOG_GROUP_PREFIX)


def worker_cloudwatch_config(log_group_name: str) -> CloudWatchConfigBuilder:
    builder = CloudWatchConfigBuilder(force_flush_interval=LOG_FLUSH_INTERVAL_SECONDS)
    for stream_prefix, file_path in WORKER_LOG_FILES:
        builder.add_logs_collect_list(log_group_name, stream_prefix, file_path)
    return builder


class ObservabilityWirer:
    """Creates the fleet's log group and the log shipper feeding it."""

    def __init__(self, clients: AWSClients, log_groups: LogGroupFactory | None = None) -> None:
        self.clients = clients
        self.log_groups = log_groups or LogGroupFactory(clients)

    def wire(self, group: ScalingGroup, fleet_id: str, log_group_props: LogGroupProps | None = None) -> None:
        props = defaulted_log_group_props(log_group_props)
        log_group = self.log_groups.create_or_fetch(fleet_id, props)
        log_group.grant_write(group)

        config = worker_cloudwatch_config(log_group.log_group_name)
        agent = CloudWatchAgent(
            self.clients,
            parameter_name=f"/renderfleet/{group.name}/cloudwatch-agent",
            cloudwatch_config=config.generate_cloudwatch_configuration(),
        )
        agent.install(group)
        logger.bind(component="observability", log_group=log_group.log_group_name).info(
            "Shipping {n} log files from {group}",
            n=len(config.collect_list),
            group=group.name,
        )
