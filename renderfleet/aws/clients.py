"""AWS client bundle with dependency injection.

Provides lazily created boto3 clients that can be injected into the
builders and wirers.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError
from injector import Module, provider, singleton

from .config import AWS

if TYPE_CHECKING:
    from mypy_boto3_autoscaling import AutoScalingClient
    from mypy_boto3_ec2 import EC2Client
    from mypy_boto3_iam import IAMClient
    from mypy_boto3_logs import CloudWatchLogsClient
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_ssm import SSMClient
    from mypy_boto3_sts import STSClient


def error_code(exc: ClientError) -> str:
    """Extract the AWS error code from a ClientError."""
    return exc.response.get("Error", {}).get("Code", "")


class AWSClients:
    """boto3 clients for one region, created on first use."""

    def __init__(self, config: AWS) -> None:
        self.config = config

    @property
    def region(self) -> str:
        return self.config.region

    @cached_property
    def ec2(self) -> EC2Client:
        import boto3

        return boto3.client("ec2", region_name=self.region)

    @cached_property
    def autoscaling(self) -> AutoScalingClient:
        import boto3

        return boto3.client("autoscaling", region_name=self.region)

    @cached_property
    def iam(self) -> IAMClient:
        import boto3

        return boto3.client("iam", region_name=self.region)

    @cached_property
    def logs(self) -> CloudWatchLogsClient:
        import boto3

        return boto3.client("logs", region_name=self.region)

    @cached_property
    def s3(self) -> S3Client:
        import boto3

        return boto3.client("s3", region_name=self.region)

    @cached_property
    def ssm(self) -> SSMClient:
        import boto3

        return boto3.client("ssm", region_name=self.region)

    @cached_property
    def sts(self) -> STSClient:
        import boto3

        return boto3.client("sts", region_name=self.region)

    @cached_property
    def account_id(self) -> str:
        """AWS account ID."""
        return self.sts.get_caller_identity()["Account"]


class AWSModule(Module):
    """DI module that provides the AWS client bundle.

    Usage:
        >>> from injector import Injector
        >>> from renderfleet.aws import AWS, AWSModule
        >>> from renderfleet.fleet import FleetProvisioner
        >>>
        >>> injector = Injector([AWSModule(AWS(region="us-west-2"))])
        >>> provisioner = injector.get(FleetProvisioner)
    """

    def __init__(self, config: AWS | None = None) -> None:
        self._config = config or AWS()

    @singleton
    @provider
    def provide_config(self) -> AWS:
        return self._config

    @singleton
    @provider
    def provide_clients(self, config: AWS) -> AWSClients:
        """Provide the singleton client bundle."""
        return AWSClients(config)


__all__ = [
    "AWSClients",
    "AWSModule",
    "error_code",
]
