"""In-memory stand-ins for the boto3 clients and fleet collaborators.

Each fake records the calls it receives as ``(operation, kwargs)`` pairs and
returns the smallest response shape the code under test reads.
"""

from __future__ import annotations

from typing import Any

from botocore.exceptions import ClientError

from renderfleet.aws.config import AWS
from renderfleet.aws.network import Connections, Port
from renderfleet.health import HealthCheckConfig

ACCOUNT_ID = "123456789012"
REGION = "us-west-2"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _record(self, operation: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((operation, kwargs))

    def called(self, operation: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == operation]

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeEC2(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.subnets = [
            {"SubnetId": "subnet-private-a", "MapPublicIpOnLaunch": False},
            {"SubnetId": "subnet-private-b", "MapPublicIpOnLaunch": False},
            {"SubnetId": "subnet-public-a", "MapPublicIpOnLaunch": True},
        ]
        self.duplicate_rules = False
        self._sg_counter = 0
        self._lt_versions = 0

    def describe_subnets(self, **kwargs: Any) -> dict[str, Any]:
        self._record("describe_subnets", kwargs)
        return {"Subnets": self.subnets}

    def create_security_group(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_security_group", kwargs)
        self._sg_counter += 1
        return {"GroupId": f"sg-fleet{self._sg_counter}"}

    def authorize_security_group_ingress(self, **kwargs: Any) -> dict[str, Any]:
        self._record("authorize_security_group_ingress", kwargs)
        if self.duplicate_rules:
            raise client_error("InvalidPermission.Duplicate", "AuthorizeSecurityGroupIngress")
        return {"Return": True}

    def authorize_security_group_egress(self, **kwargs: Any) -> dict[str, Any]:
        self._record("authorize_security_group_egress", kwargs)
        return {"Return": True}

    def create_launch_template(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_launch_template", kwargs)
        self._lt_versions = 1
        return {"LaunchTemplate": {"LaunchTemplateId": "lt-0001", "LatestVersionNumber": 1}}

    def create_launch_template_version(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_launch_template_version", kwargs)
        self._lt_versions += 1
        return {"LaunchTemplateVersion": {"VersionNumber": self._lt_versions}}


class FakeAutoScaling(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.groups: dict[str, dict[str, Any]] = {}
        self.max_size_override: int | None = None
        self.invisible_describes = 0

    def create_auto_scaling_group(self, **kwargs: Any) -> None:
        self._record("create_auto_scaling_group", kwargs)
        self.groups[kwargs["AutoScalingGroupName"]] = dict(kwargs)

    def put_lifecycle_hook(self, **kwargs: Any) -> None:
        self._record("put_lifecycle_hook", kwargs)

    def enable_metrics_collection(self, **kwargs: Any) -> None:
        self._record("enable_metrics_collection", kwargs)

    def update_auto_scaling_group(self, **kwargs: Any) -> None:
        self._record("update_auto_scaling_group", kwargs)

    def attach_load_balancer_target_groups(self, **kwargs: Any) -> None:
        self._record("attach_load_balancer_target_groups", kwargs)

    def describe_auto_scaling_groups(self, **kwargs: Any) -> dict[str, Any]:
        self._record("describe_auto_scaling_groups", kwargs)
        if self.invisible_describes > 0:
            self.invisible_describes -= 1
            return {"AutoScalingGroups": []}
        found = []
        for name in kwargs["AutoScalingGroupNames"]:
            if name not in self.groups:
                continue
            group = self.groups[name]
            max_size = self.max_size_override if self.max_size_override is not None else group["MaxSize"]
            found.append({
                "AutoScalingGroupName": name,
                "AutoScalingGroupARN": (
                    f"arn:aws:autoscaling:{REGION}:{ACCOUNT_ID}:autoScalingGroup:"
                    f"0f1e2d3c:autoScalingGroupName/{name}"
                ),
                "MinSize": group["MinSize"],
                "MaxSize": max_size,
                "DesiredCapacity": group["DesiredCapacity"],
            })
        return {"AutoScalingGroups": found}


class _FakeWaiter:
    def __init__(self, owner: Recorder, name: str) -> None:
        self._owner = owner
        self._name = name

    def wait(self, **kwargs: Any) -> None:
        self._owner._record(f"wait:{self._name}", kwargs)


class FakeIAM(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.roles: dict[str, str] = {}
        self.profiles: dict[str, list[str]] = {}

    def get_role(self, **kwargs: Any) -> dict[str, Any]:
        self._record("get_role", kwargs)
        name = kwargs["RoleName"]
        if name not in self.roles:
            raise client_error("NoSuchEntity", "GetRole")
        return {"Role": {"RoleName": name, "Arn": self.roles[name]}}

    def create_role(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_role", kwargs)
        name = kwargs["RoleName"]
        self.roles[name] = f"arn:aws:iam::{ACCOUNT_ID}:role/{name}"
        return {"Role": {"RoleName": name, "Arn": self.roles[name]}}

    def get_instance_profile(self, **kwargs: Any) -> dict[str, Any]:
        self._record("get_instance_profile", kwargs)
        name = kwargs["InstanceProfileName"]
        if name not in self.profiles:
            raise client_error("NoSuchEntity", "GetInstanceProfile")
        return {
            "InstanceProfile": {
                "Arn": f"arn:aws:iam::{ACCOUNT_ID}:instance-profile/{name}",
                "Roles": [{"RoleName": r} for r in self.profiles[name]],
            }
        }

    def create_instance_profile(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_instance_profile", kwargs)
        name = kwargs["InstanceProfileName"]
        self.profiles[name] = []
        return {"InstanceProfile": {"Arn": f"arn:aws:iam::{ACCOUNT_ID}:instance-profile/{name}"}}

    def add_role_to_instance_profile(self, **kwargs: Any) -> None:
        self._record("add_role_to_instance_profile", kwargs)
        self.profiles[kwargs["InstanceProfileName"]].append(kwargs["RoleName"])

    def get_waiter(self, name: str) -> _FakeWaiter:
        return _FakeWaiter(self, name)

    def put_role_policy(self, **kwargs: Any) -> None:
        self._record("put_role_policy", kwargs)

    def create_policy(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_policy", kwargs)
        return {"Policy": {"Arn": f"arn:aws:iam::{ACCOUNT_ID}:policy/{kwargs['PolicyName']}"}}

    def attach_role_policy(self, **kwargs: Any) -> None:
        self._record("attach_role_policy", kwargs)


class FakeLogs(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.log_groups: set[str] = set()

    def create_log_group(self, **kwargs: Any) -> None:
        self._record("create_log_group", kwargs)
        name = kwargs["logGroupName"]
        if name in self.log_groups:
            raise client_error("ResourceAlreadyExistsException", "CreateLogGroup")
        self.log_groups.add(name)

    def put_retention_policy(self, **kwargs: Any) -> None:
        self._record("put_retention_policy", kwargs)

    def delete_retention_policy(self, **kwargs: Any) -> None:
        self._record("delete_retention_policy", kwargs)


class FakeS3(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.buckets: set[str] = set()
        self.objects: dict[tuple[str, str], bytes] = {}

    def head_bucket(self, **kwargs: Any) -> dict[str, Any]:
        self._record("head_bucket", kwargs)
        if kwargs["Bucket"] not in self.buckets:
            raise client_error("404", "HeadBucket")
        return {}

    def create_bucket(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_bucket", kwargs)
        self.buckets.add(kwargs["Bucket"])
        return {}

    def put_bucket_encryption(self, **kwargs: Any) -> None:
        self._record("put_bucket_encryption", kwargs)

    def put_bucket_tagging(self, **kwargs: Any) -> None:
        self._record("put_bucket_tagging", kwargs)

    def put_object(self, **kwargs: Any) -> dict[str, Any]:
        self._record("put_object", kwargs)
        self.objects[(kwargs["Bucket"], kwargs["Key"])] = kwargs["Body"]
        return {}


class FakeSSM(Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.parameters: dict[str, str] = {}

    def put_parameter(self, **kwargs: Any) -> dict[str, Any]:
        self._record("put_parameter", kwargs)
        self.parameters[kwargs["Name"]] = kwargs["Value"]
        return {"Version": 1}

    def add_tags_to_resource(self, **kwargs: Any) -> None:
        self._record("add_tags_to_resource", kwargs)


class FakeClients:
    """Duck-typed replacement for ``AWSClients``."""

    def __init__(self, config: AWS | None = None) -> None:
        self.config = config or AWS(region=REGION)
        self.account_id = ACCOUNT_ID
        self.ec2 = FakeEC2()
        self.autoscaling = FakeAutoScaling()
        self.iam = FakeIAM()
        self.logs = FakeLogs()
        self.s3 = FakeS3()
        self.ssm = FakeSSM()

    @property
    def region(self) -> str:
        return self.config.region


class FakeRenderQueue:
    def __init__(self, ec2: FakeEC2, port: int = 8080) -> None:
        self.connections = Connections(
            ec2=ec2,  # type: ignore[arg-type]
            security_group_ids=["sg-queue"],
            default_port=Port.tcp(port),
        )
        self.configured_hosts: list[Any] = []

    def configure_client_instance(self, host: Any) -> None:
        self.configured_hosts.append(host)
        host.user_data.add_commands("echo 'render queue client configured'")


class FakeHealthMonitor:
    """Registers fleets the way a monitor that suspends them would.

    With a ``role_name`` it attaches each fleet's update policy to that role
    and prepares an alarm on the fleet's capacity metric.
    """

    def __init__(self, role_name: str | None = None) -> None:
        self.role_name = role_name
        self.registrations: list[tuple[Any, HealthCheckConfig]] = []
        self.alarms: list[dict[str, Any]] = []

    def register_fleet(self, fleet: Any, health_check_config: HealthCheckConfig) -> None:
        self.registrations.append((fleet, health_check_config))
        if self.role_name is None:
            return
        fleet.target_update_policy.attach_to_role(self.role_name)
        self.alarms.append(fleet.target_capacity_metric.to_alarm_kwargs())
