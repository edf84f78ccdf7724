"""CloudWatch log groups for worker fleets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError
from loguru import logger

from renderfleet.constants import DEFAULT_LOG_RETENTION_DAYS, FleetTag

from .clients import error_code
from .iam import PolicyStatement

if TYPE_CHECKING:
    from renderfleet.aws.clients import AWSClients
    from renderfleet.protocols import ClientHost

log = logger.bind(component="logs")

# Values accepted by logs.put_retention_policy.
RETENTION_DAYS = frozenset({
    1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545, 731,
    1096, 1827, 2192, 2557, 2922, 3288, 3653,
})


@dataclass(frozen=True, slots=True)
class LogGroupProps:
    """Properties of a fleet's log group.

    Args:
        log_group_prefix: Prepended to the log group name. None lets the
            caller pick its own default.
        retention_days: Days to keep log events. None keeps them forever.
    """

    log_group_prefix: str | None = None
    retention_days: int | None = DEFAULT_LOG_RETENTION_DAYS

    def __post_init__(self) -> None:
        if self.retention_days is not None and self.retention_days not in RETENTION_DAYS:
            raise ValueError(
                f"Invalid retention_days: {self.retention_days}. "
                f"Valid: {', '.join(map(str, sorted(RETENTION_DAYS)))}"
            )


@dataclass(frozen=True, slots=True)
class LogGroup:
    """Handle to an existing log group."""

    clients: AWSClients
    log_group_name: str

    @property
    def arn(self) -> str:
        return (
            f"arn:aws:logs:{self.clients.region}:{self.clients.account_id}"
            f":log-group:{self.log_group_name}"
        )

    def grant_write(self, host: ClientHost) -> None:
        """Allow the host's role to create streams and put events in this group."""
        host.role.add_to_policy(
            f"{host.role.name}-logs-{self.log_group_name.strip('/').replace('/', '-')}",
            PolicyStatement(
                actions=(
                    "logs:CreateLogStream",
                    "logs:PutLogEvents",
                    "logs:DescribeLogStreams",
                ),
                resources=(f"{self.arn}:*",),
            ),
        )


class LogGroupFactory:
    """Creates log groups, or fetches them when they already exist."""

    def __init__(self, clients: AWSClients) -> None:
        self.clients = clients

    @staticmethod
    def log_group_name(name: str, props: LogGroupProps | None = None) -> str:
        prefix = props.log_group_prefix if props and props.log_group_prefix else ""
        return f"{prefix}{name}"

    def create_or_fetch(self, name: str, props: LogGroupProps | None = None) -> LogGroup:
        """Return the log group ``{prefix}{name}``, creating it if needed.

        Retention from ``props`` is applied in both cases, so re-running
        provisioning converges on the same settings.
        """
        props = props or LogGroupProps()
        full_name = self.log_group_name(name, props)
        logs = self.clients.logs

        try:
            logs.create_log_group(
                logGroupName=full_name,
                tags={FleetTag.MANAGED: "true"},
            )
            log.info("Created log group {name}", name=full_name)
        except ClientError as e:
            if error_code(e) != "ResourceAlreadyExistsException":
                raise
            log.debug("Reusing log group {name}", name=full_name)

        if props.retention_days is not None:
            logs.put_retention_policy(
                logGroupName=full_name,
                retentionInDays=props.retention_days,
            )
        else:
            logs.delete_retention_policy(logGroupName=full_name)

        return LogGroup(clients=self.clients, log_group_name=full_name)
