"""Auto Scaling group creation for worker fleets.

The group is created at zero capacity with its final maximum, so the
authoritative ``MaxSize`` can be read back right away while no instance boots
with an incomplete user data script. ``ScalingGroup.activate`` renders the
user data and scales the group to its configured capacity.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_delay, wait_fixed

from renderfleet.constants import (
    CAPACITY_METRIC_NAME,
    CAPACITY_METRIC_NAMESPACE,
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_VOLUME_SIZE_GIB,
    GROUP_VISIBLE_TIMEOUT,
    HEALTH_CHECK_GRACE_SECONDS,
    LAUNCH_HOOK_NAME,
    METRICS_GRANULARITY,
    RESOURCE_SIGNAL_TIMEOUT_SECONDS,
    ROOT_DEVICE_NAME,
    UPDATE_GROUP_ACTION,
    FleetTag,
    OperatingSystemType,
)

from .iam import ManagedPolicy, PolicyStatement, Role
from .metrics import Metric
from .network import Connections, SubnetSelection, create_security_group, resolve_subnets
from .user_data import UserData

if TYPE_CHECKING:
    from renderfleet.aws.clients import AWSClients
    from renderfleet.config import FleetConfig
    from renderfleet.scope import Scope


class _GroupNotVisibleError(RuntimeError):
    """Group not yet returned by describe - retry."""


# =============================================================================
# Derived Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class ScalingGroupSpec:
    """Everything the builder derives from a FleetConfig before calling AWS."""

    name: str
    image_id: str
    os_type: OperatingSystemType
    instance_type: str
    key_name: str | None
    subnets: SubnetSelection
    volume_size_gib: int
    spot_price: str | None
    min_capacity: int
    max_capacity: int
    desired_capacity: int | None

    def launch_template_data(
        self,
        instance_profile_arn: str,
        security_group_ids: list[str],
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ImageId": self.image_id,
            "InstanceType": self.instance_type,
            "IamInstanceProfile": {"Arn": instance_profile_arn},
            "SecurityGroupIds": list(security_group_ids),
            "BlockDeviceMappings": [
                {
                    "DeviceName": ROOT_DEVICE_NAME,
                    "Ebs": {
                        "VolumeSize": self.volume_size_gib,
                        "Encrypted": True,
                        "DeleteOnTermination": True,
                    },
                }
            ],
            "TagSpecifications": [
                {
                    "ResourceType": "instance",
                    "Tags": [
                        {"Key": "Name", "Value": self.name},
                        {"Key": FleetTag.MANAGED, "Value": "true"},
                    ],
                }
            ],
            "MetadataOptions": {"HttpTokens": "required", "HttpEndpoint": "enabled"},
        }
        if self.key_name:
            data["KeyName"] = self.key_name
        if self.spot_price is not None:
            data["InstanceMarketOptions"] = {
                "MarketType": "spot",
                "SpotOptions": {"MaxPrice": self.spot_price, "SpotInstanceType": "one-time"},
            }
        return data


def derive_group_spec(config: FleetConfig, name: str) -> ScalingGroupSpec:
    """Resolve defaults for a scaling group.

    Raises:
        SizeConversionError: If the block device size is not whole GiB.
    """
    size = config.block_device_volume_size
    return ScalingGroupSpec(
        name=name,
        image_id=config.machine_image.image_id,
        os_type=config.machine_image.os_type,
        instance_type=config.instance_type or DEFAULT_INSTANCE_TYPE,
        key_name=config.key_name,
        subnets=config.vpc_subnets or SubnetSelection(),
        volume_size_gib=size.to_gibibytes() if size is not None else DEFAULT_VOLUME_SIZE_GIB,
        spot_price=str(config.spot_price) if config.spot_price is not None else None,
        min_capacity=config.min_capacity,
        max_capacity=config.effective_max_capacity,
        desired_capacity=config.desired_capacity,
    )


# =============================================================================
# Scaling Group Handle
# =============================================================================


class ScalingGroup:
    """Handle to a created Auto Scaling group."""

    def __init__(
        self,
        clients: AWSClients,
        spec: ScalingGroupSpec,
        arn: str,
        max_size: int,
        launch_template_id: str,
        role: Role,
        connections: Connections,
        update_policy: ManagedPolicy,
    ) -> None:
        self._clients = clients
        self.spec = spec
        self.name = spec.name
        self.arn = arn
        self.max_size = max_size
        self.launch_template_id = launch_template_id
        self.lifecycle_hook_name = LAUNCH_HOOK_NAME
        self.update_policy = update_policy
        self._role = role
        self._connections = connections
        self._user_data = UserData(spec.os_type)
        self.active = False

    @property
    def region(self) -> str:
        return self._clients.region

    @property
    def os_type(self) -> OperatingSystemType:
        return self.spec.os_type

    @property
    def role(self) -> Role:
        return self._role

    @property
    def grant_principal(self) -> Role:
        return self._role

    @property
    def connections(self) -> Connections:
        return self._connections

    @property
    def user_data(self) -> UserData:
        return self._user_data

    def capacity_metric(self) -> Metric:
        return Metric(
            namespace=CAPACITY_METRIC_NAMESPACE,
            metric_name=CAPACITY_METRIC_NAME,
            dimensions={"AutoScalingGroupName": self.name},
            label=CAPACITY_METRIC_NAME,
        )

    def add_security_group(self, security_group_id: str) -> None:
        """Attach another security group to all future instances."""
        self._connections.add_security_group(security_group_id)
        self._clients.ec2.create_launch_template_version(
            LaunchTemplateId=self.launch_template_id,
            SourceVersion="$Latest",
            LaunchTemplateData={"SecurityGroupIds": list(self._connections.security_group_ids)},
        )

    def attach_to_network_target_group(self, target_group_arn: str) -> None:
        """Register the group's instances with a load balancer target group."""
        self._clients.autoscaling.attach_load_balancer_target_groups(
            AutoScalingGroupName=self.name,
            TargetGroupARNs=[target_group_arn],
        )

    def activate(self) -> None:
        """Publish the rendered user data and scale to the configured capacity."""
        user_data = base64.b64encode(self._user_data.render().encode()).decode()
        self._clients.ec2.create_launch_template_version(
            LaunchTemplateId=self.launch_template_id,
            SourceVersion="$Latest",
            LaunchTemplateData={"UserData": user_data},
        )
        capacity: dict[str, int] = {"MinSize": self.spec.min_capacity}
        if self.spec.desired_capacity is not None:
            capacity["DesiredCapacity"] = self.spec.desired_capacity
        self._clients.autoscaling.update_auto_scaling_group(
            AutoScalingGroupName=self.name,
            **capacity,
        )
        self.active = True
        logger.bind(component="scaling_group", scaling_group=self.name).info(
            "Activated with min={min} desired={desired} max={max}",
            min=self.spec.min_capacity,
            desired=self.spec.desired_capacity,
            max=self.max_size,
        )


# =============================================================================
# Builder
# =============================================================================


@retry(
    stop=stop_after_delay(GROUP_VISIBLE_TIMEOUT),
    wait=wait_fixed(2),
    retry=retry_if_exception_type(_GroupNotVisibleError),
    reraise=True,
)
def _describe_group(clients: AWSClients, name: str) -> dict[str, Any]:
    response = clients.autoscaling.describe_auto_scaling_groups(AutoScalingGroupNames=[name])
    groups = response.get("AutoScalingGroups", [])
    if not groups:
        raise _GroupNotVisibleError(f"Auto Scaling group {name} not found")
    return groups[0]


class ScalingGroupBuilder:
    """Creates the Auto Scaling group of a worker fleet."""

    def __init__(self, clients: AWSClients) -> None:
        self.clients = clients

    def build(self, config: FleetConfig, scope: Scope) -> ScalingGroup:
        spec = derive_group_spec(config, scope.resource_name)
        log = logger.bind(component="scaling_group", scaling_group=spec.name)
        ec2 = self.clients.ec2
        autoscaling = self.clients.autoscaling

        subnet_ids = resolve_subnets(ec2, config.vpc_id, spec.subnets)

        if config.role_name:
            role = Role.from_name(self.clients.iam, config.role_name)
        else:
            role = Role.create(self.clients.iam, f"{spec.name}-role", "Render worker instance role")
        profile_arn = role.ensure_instance_profile(f"{spec.name}-profile")

        default_sg = create_security_group(
            ec2, config.vpc_id, f"{spec.name}-sg", f"Render workers of {scope.path}"
        )
        connections = Connections(ec2=ec2, security_group_ids=[default_sg])
        if config.security_group_id:
            connections.add_security_group(config.security_group_id)

        template = ec2.create_launch_template(
            LaunchTemplateName=f"{spec.name}-lt",
            LaunchTemplateData=spec.launch_template_data(profile_arn, connections.security_group_ids),
        )
        template_id = template["LaunchTemplate"]["LaunchTemplateId"]

        autoscaling.create_auto_scaling_group(
            AutoScalingGroupName=spec.name,
            LaunchTemplate={"LaunchTemplateId": template_id, "Version": "$Latest"},
            MinSize=0,
            MaxSize=spec.max_capacity,
            DesiredCapacity=0,
            VPCZoneIdentifier=",".join(subnet_ids),
            HealthCheckType="ELB",
            HealthCheckGracePeriod=HEALTH_CHECK_GRACE_SECONDS,
            Tags=[
                {"Key": "Name", "Value": spec.name, "PropagateAtLaunch": True},
                {"Key": FleetTag.MANAGED, "Value": "true", "PropagateAtLaunch": True},
                {"Key": FleetTag.FLEET_ID, "Value": scope.path, "PropagateAtLaunch": True},
            ],
        )
        autoscaling.put_lifecycle_hook(
            LifecycleHookName=LAUNCH_HOOK_NAME,
            AutoScalingGroupName=spec.name,
            LifecycleTransition="autoscaling:EC2_INSTANCE_LAUNCHING",
            HeartbeatTimeout=RESOURCE_SIGNAL_TIMEOUT_SECONDS,
            DefaultResult="ABANDON",
        )
        autoscaling.enable_metrics_collection(
            AutoScalingGroupName=spec.name,
            Metrics=[CAPACITY_METRIC_NAME],
            Granularity=METRICS_GRANULARITY,
        )

        # The service may adjust what was requested: trust the described group.
        described = _describe_group(self.clients, spec.name)
        arn = described["AutoScalingGroupARN"]
        max_size = int(described["MaxSize"])

        role.add_to_policy(
            f"{spec.name}-signal",
            PolicyStatement(actions=("autoscaling:CompleteLifecycleAction",), resources=(arn,)),
        )
        update_policy = ManagedPolicy.create(
            self.clients.iam,
            f"{spec.name}-ASGUpdatePolicy",
            (PolicyStatement(actions=(UPDATE_GROUP_ACTION,), resources=(arn,)),),
            description=f"Allows updating the capacity of {spec.name}",
        )

        group = ScalingGroup(
            clients=self.clients,
            spec=spec,
            arn=arn,
            max_size=max_size,
            launch_template_id=template_id,
            role=role,
            connections=connections,
            update_policy=update_policy,
        )
        connections.allow_to_default_port(config.render_queue)

        log.info(
            "Created in {subnets} subnet(s), max_size={max_size}",
            subnets=len(subnet_ids),
            max_size=max_size,
        )
        return group
