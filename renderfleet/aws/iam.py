"""IAM roles, instance profiles and scoped policies for worker fleets."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError
from loguru import logger

from renderfleet.constants import FleetTag

from .clients import error_code

if TYPE_CHECKING:
    from mypy_boto3_iam import IAMClient

log = logger.bind(component="iam")

# Trust policy for EC2 to assume the role
ASSUME_ROLE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "ec2.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


@dataclass(frozen=True, slots=True)
class PolicyStatement:
    """A single IAM allow statement."""

    actions: tuple[str, ...]
    resources: tuple[str, ...]
    sid: str | None = None

    def to_dict(self) -> dict[str, Any]:
        statement: dict[str, Any] = {
            "Effect": "Allow",
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }
        if self.sid:
            statement["Sid"] = self.sid
        return statement


def policy_document(statements: tuple[PolicyStatement, ...] | list[PolicyStatement]) -> str:
    """Render statements as a JSON policy document."""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [s.to_dict() for s in statements],
    })


@dataclass(frozen=True, slots=True)
class ManagedPolicy:
    """A customer-managed policy that can be attached to other roles.

    Used for the fleet's update policy, which a health monitor attaches to
    the role of whatever suspends the fleet.
    """

    iam: IAMClient
    name: str
    arn: str
    statements: tuple[PolicyStatement, ...]

    @classmethod
    def create(
        cls,
        iam: IAMClient,
        name: str,
        statements: tuple[PolicyStatement, ...],
        description: str = "",
    ) -> ManagedPolicy:
        response = iam.create_policy(
            PolicyName=name,
            PolicyDocument=policy_document(statements),
            Description=description,
            Tags=[{"Key": FleetTag.MANAGED, "Value": "true"}],
        )
        arn = response["Policy"]["Arn"]
        log.debug("Created managed policy {arn}", arn=arn)
        return cls(iam=iam, name=name, arn=arn, statements=statements)

    def attach_to_role(self, role_name: str) -> None:
        self.iam.attach_role_policy(RoleName=role_name, PolicyArn=self.arn)


@dataclass(slots=True)
class Role:
    """An IAM role plus the instance profile that carries it.

    This is the grant principal of a fleet: every ``grant_*`` helper in
    renderfleet ends in ``Role.add_to_policy``.
    """

    iam: IAMClient
    name: str
    arn: str
    instance_profile_arn: str = ""
    inline_policies: dict[str, tuple[PolicyStatement, ...]] = field(default_factory=dict)

    @classmethod
    def create(cls, iam: IAMClient, name: str, description: str) -> Role:
        """Create a role assumable by EC2, or reuse one with the same name."""
        try:
            arn = iam.get_role(RoleName=name)["Role"]["Arn"]
            log.debug("Reusing role {name}", name=name)
        except ClientError as e:
            if error_code(e) != "NoSuchEntity":
                raise
            response = iam.create_role(
                RoleName=name,
                AssumeRolePolicyDocument=json.dumps(ASSUME_ROLE_POLICY),
                Description=description,
                Tags=[{"Key": FleetTag.MANAGED, "Value": "true"}],
            )
            arn = response["Role"]["Arn"]
            log.info("Created role {name}", name=name)
        return cls(iam=iam, name=name, arn=arn)

    @classmethod
    def from_name(cls, iam: IAMClient, name: str) -> Role:
        """Import an existing role.

        The role must be assumable by the service principal ``ec2.amazonaws.com``.
        """
        arn = iam.get_role(RoleName=name)["Role"]["Arn"]
        return cls(iam=iam, name=name, arn=arn)

    def ensure_instance_profile(self, profile_name: str) -> str:
        """Create or get an instance profile carrying this role.

        Returns:
            Instance profile ARN.
        """
        try:
            profile = self.iam.get_instance_profile(InstanceProfileName=profile_name)["InstanceProfile"]
            arn = profile["Arn"]
            if not any(r["RoleName"] == self.name for r in profile.get("Roles", [])):
                self.iam.add_role_to_instance_profile(
                    InstanceProfileName=profile_name,
                    RoleName=self.name,
                )
        except ClientError as e:
            if error_code(e) != "NoSuchEntity":
                raise
            response = self.iam.create_instance_profile(
                InstanceProfileName=profile_name,
                Tags=[{"Key": FleetTag.MANAGED, "Value": "true"}],
            )
            arn = response["InstanceProfile"]["Arn"]
            self.iam.add_role_to_instance_profile(
                InstanceProfileName=profile_name,
                RoleName=self.name,
            )

            # Wait for new profile to propagate (only when newly created)
            waiter = self.iam.get_waiter("instance_profile_exists")
            waiter.wait(
                InstanceProfileName=profile_name,
                WaiterConfig={"Delay": 1, "MaxAttempts": 10},
            )

        self.instance_profile_arn = arn
        return arn

    def add_to_policy(self, policy_name: str, *statements: PolicyStatement) -> None:
        """Create or replace an inline policy on this role."""
        self.iam.put_role_policy(
            RoleName=self.name,
            PolicyName=policy_name,
            PolicyDocument=policy_document(statements),
        )
        self.inline_policies[policy_name] = statements
        log.debug("Put inline policy {policy} on {role}", policy=policy_name, role=self.name)

    def has_action(self, action: str, resource: str) -> bool:
        """Whether an inline policy put through this handle allows ``action`` on ``resource``."""
        return any(
            action in s.actions and resource in s.resources
            for statements in self.inline_policies.values()
            for s in statements
        )
