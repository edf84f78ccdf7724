"""VPC placement and security-group connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError
from loguru import logger

from renderfleet.constants import FleetTag
from renderfleet.exceptions import ConfigurationError

from .clients import error_code

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

    from renderfleet.protocols import Connectable

log = logger.bind(component="network")


class SubnetType(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True, slots=True)
class SubnetSelection:
    """Which subnets of the VPC instances are placed in.

    Either explicit ``subnet_ids`` or a ``subnet_type``; explicit ids win.
    """

    subnet_ids: tuple[str, ...] = ()
    subnet_type: SubnetType = SubnetType.PRIVATE


@dataclass(frozen=True, slots=True)
class Port:
    """A TCP port range."""

    from_port: int
    to_port: int
    protocol: str = "tcp"

    @classmethod
    def tcp(cls, port: int) -> Port:
        return cls(port, port)

    def __str__(self) -> str:
        if self.from_port == self.to_port:
            return f"{self.protocol.upper()} {self.from_port}"
        return f"{self.protocol.upper()} {self.from_port}-{self.to_port}"


def resolve_subnets(ec2: EC2Client, vpc_id: str, selection: SubnetSelection) -> tuple[str, ...]:
    """Resolve a subnet selection to subnet IDs.

    Private subnets are those that do not assign public IPs on launch.

    Raises:
        ConfigurationError: If the selection matches no subnet.
    """
    if selection.subnet_ids:
        return selection.subnet_ids

    response = ec2.describe_subnets(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])
    want_public = selection.subnet_type == SubnetType.PUBLIC
    subnets = tuple(
        s["SubnetId"]
        for s in response["Subnets"]
        if bool(s.get("MapPublicIpOnLaunch", False)) == want_public
    )
    if not subnets:
        raise ConfigurationError(f"No {selection.subnet_type} subnets found in {vpc_id}")
    return subnets


def create_security_group(ec2: EC2Client, vpc_id: str, name: str, description: str) -> str:
    """Create a security group allowing all outbound traffic (the EC2 default).

    Returns:
        Security group ID.
    """
    response = ec2.create_security_group(
        GroupName=name,
        Description=description,
        VpcId=vpc_id,
        TagSpecifications=[
            {
                "ResourceType": "security-group",
                "Tags": [
                    {"Key": "Name", "Value": name},
                    {"Key": FleetTag.MANAGED, "Value": "true"},
                ],
            }
        ],
    )
    return response["GroupId"]


@dataclass(slots=True)
class Connections:
    """Security groups of a resource and the rules between them.

    Args:
        ec2: EC2 client used to authorize rules.
        security_group_ids: Groups attached to the resource.
        default_port: Port peers should use to reach the resource.
        allow_all_outbound: Whether the groups already allow all egress.
    """

    ec2: EC2Client
    security_group_ids: list[str] = field(default_factory=list)
    default_port: Port | None = None
    allow_all_outbound: bool = True

    def add_security_group(self, security_group_id: str) -> None:
        if security_group_id not in self.security_group_ids:
            self.security_group_ids.append(security_group_id)

    def allow_to(self, other: Connectable, port: Port, description: str = "") -> None:
        """Allow traffic from these groups to ``other`` on ``port``."""
        peer = other.connections
        for ours in self.security_group_ids:
            for theirs in peer.security_group_ids:
                if not self.allow_all_outbound:
                    self._authorize(
                        self.ec2.authorize_security_group_egress, ours, theirs, port, description
                    )
                self._authorize(
                    peer.ec2.authorize_security_group_ingress, theirs, ours, port, description
                )
        log.debug(
            "Allowed {port} from {src} to {dst}",
            port=port,
            src=self.security_group_ids,
            dst=peer.security_group_ids,
        )

    def allow_to_default_port(self, other: Connectable, description: str = "") -> None:
        """Allow traffic to ``other`` on its default port.

        Raises:
            ValueError: If ``other`` has no default port.
        """
        port = other.connections.default_port
        if port is None:
            raise ValueError("Cannot call allow_to_default_port(): other resource has no default port")
        self.allow_to(other, port, description or f"To {port}")

    @staticmethod
    def _authorize(call, group_id: str, peer_group_id: str, port: Port, description: str) -> None:
        try:
            call(
                GroupId=group_id,
                IpPermissions=[
                    {
                        "IpProtocol": port.protocol,
                        "FromPort": port.from_port,
                        "ToPort": port.to_port,
                        "UserIdGroupPairs": [
                            {"GroupId": peer_group_id, "Description": description or str(port)}
                        ],
                    }
                ],
            )
        except ClientError as e:
            if error_code(e) != "InvalidPermission.Duplicate":
                raise

