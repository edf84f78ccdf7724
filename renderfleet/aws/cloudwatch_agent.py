"""CloudWatch agent configuration and installation on fleet instances.

The agent configuration is stored in an SSM parameter; instances install
the agent at boot and fetch the configuration from that parameter.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from renderfleet.constants import FleetTag, OperatingSystemType

from .iam import PolicyStatement

if TYPE_CHECKING:
    from renderfleet.aws.clients import AWSClients
    from renderfleet.protocols import ClientHost

log = logger.bind(component="cloudwatch_agent")

LINUX_AGENT_URL = (
    "https://s3.amazonaws.com/amazoncloudwatch-agent/amazon_linux/amd64/latest/"
    "amazon-cloudwatch-agent.rpm"
)
WINDOWS_AGENT_URL = (
    "https://s3.amazonaws.com/amazoncloudwatch-agent/windows/amd64/latest/"
    "amazon-cloudwatch-agent.msi"
)


@dataclass(frozen=True, slots=True)
class LogCollectEntry:
    """One file tailed by the agent into a log stream."""

    log_group_name: str
    log_stream_prefix: str
    file_path: str

    def to_dict(self) -> dict[str, str]:
        return {
            "log_group_name": self.log_group_name,
            "log_stream_name": f"{self.log_stream_prefix}-{{instance_id}}",
            "file_path": self.file_path,
            "timezone": "Local",
        }


@dataclass(slots=True)
class CloudWatchConfigBuilder:
    """Accumulates log files to collect and renders the agent's JSON config."""

    force_flush_interval: int
    collect_list: list[LogCollectEntry] = field(default_factory=list)

    def add_logs_collect_list(self, log_group_name: str, log_stream_prefix: str, file_path: str) -> None:
        self.collect_list.append(LogCollectEntry(log_group_name, log_stream_prefix, file_path))

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": {
                "logs_collected": {
                    "files": {
                        "collect_list": [e.to_dict() for e in self.collect_list],
                    },
                },
                "log_stream_name": "DefaultLogStream-{instance_id}",
                "force_flush_interval": self.force_flush_interval,
            },
        }

    def generate_cloudwatch_configuration(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


class CloudWatchAgent:
    """Installs and configures the CloudWatch agent on every instance of a host.

    Args:
        clients: AWS clients.
        parameter_name: SSM parameter holding the agent configuration.
        cloudwatch_config: Rendered agent configuration.
    """

    def __init__(
        self,
        clients: AWSClients,
        parameter_name: str,
        cloudwatch_config: str,
    ) -> None:
        self.clients = clients
        self.parameter_name = parameter_name if parameter_name.startswith("/") else f"/{parameter_name}"
        self.cloudwatch_config = cloudwatch_config

    def install(self, host: ClientHost) -> None:
        """Store the configuration and set the agent up on every instance of ``host``."""
        clients = self.clients
        clients.ssm.put_parameter(
            Name=self.parameter_name,
            Value=self.cloudwatch_config,
            Type="String",
            Overwrite=True,
            Description="CloudWatch agent configuration for render workers",
        )
        clients.ssm.add_tags_to_resource(
            ResourceType="Parameter",
            ResourceId=self.parameter_name,
            Tags=[{"Key": FleetTag.MANAGED, "Value": "true"}],
        )

        host.role.add_to_policy(
            f"{host.role.name}-cloudwatch-agent",
            PolicyStatement(
                actions=("ssm:GetParameter", "ssm:DescribeParameters"),
                resources=(self.parameter_arn,),
            ),
        )
        self._configure_host(host)
        log.debug("Configured agent from {param}", param=self.parameter_name)

    @property
    def parameter_arn(self) -> str:
        return f"arn:aws:ssm:{self.clients.region}:{self.clients.account_id}:parameter{self.parameter_name}"

    def _configure_host(self, host: ClientHost) -> None:
        if host.os_type == OperatingSystemType.WINDOWS:
            host.user_data.add_commands(
                "$ErrorActionPreference = 'Stop'",
                f"Invoke-WebRequest -Uri '{WINDOWS_AGENT_URL}' -OutFile \"$env:TEMP\\amazon-cloudwatch-agent.msi\"",
                "Start-Process msiexec.exe -Wait -ArgumentList "
                "\"/i $env:TEMP\\amazon-cloudwatch-agent.msi /qn\"",
                "& 'C:\\Program Files\\Amazon\\AmazonCloudWatchAgent\\amazon-cloudwatch-agent-ctl.ps1' "
                f"-a fetch-config -m ec2 -c ssm:{self.parameter_name} -s",
            )
        else:
            host.user_data.add_commands(
                "if ! command -v amazon-cloudwatch-agent-ctl >/dev/null 2>&1; then",
                f"  curl -sSfL -o /tmp/amazon-cloudwatch-agent.rpm '{LINUX_AGENT_URL}'",
                "  rpm -U /tmp/amazon-cloudwatch-agent.rpm",
                "fi",
                "/opt/aws/amazon-cloudwatch-agent/bin/amazon-cloudwatch-agent-ctl "
                f"-a fetch-config -m ec2 -c ssm:{self.parameter_name} -s",
            )
