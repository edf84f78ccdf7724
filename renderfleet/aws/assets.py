"""Script assets uploaded to S3 and executed on instances at boot."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, cast

from botocore.exceptions import ClientError
from loguru import logger

from renderfleet.constants import BOOTSTRAP_DIR, WINDOWS_BOOTSTRAP_DIR, FleetTag, OperatingSystemType

from .clients import error_code
from .iam import PolicyStatement

if TYPE_CHECKING:
    from mypy_boto3_s3.literals import BucketLocationConstraintType

    from renderfleet.aws.clients import AWSClients
    from renderfleet.protocols import ClientHost

log = logger.bind(component="assets")

_CONVENTION = {
    OperatingSystemType.LINUX: ("bash", ".sh"),
    OperatingSystemType.WINDOWS: ("powershell", ".ps1"),
}


def script_path(os_type: OperatingSystemType, base_name: str, root_dir: Path) -> Path:
    """Locate a script by convention: ``bash/<name>.sh`` or ``powershell/<name>.ps1``."""
    subdir, extension = _CONVENTION[os_type]
    return root_dir / subdir / f"{base_name}{extension}"


def ensure_asset_bucket(clients: AWSClients) -> str:
    """Ensure the asset bucket exists.

    Returns:
        Bucket name.
    """
    config = clients.config
    bucket = config.asset_bucket or f"{config.prefix}-assets-{clients.account_id}-{clients.region}"

    try:
        clients.s3.head_bucket(Bucket=bucket)
    except ClientError as e:
        if error_code(e) not in ("404", "NoSuchBucket", "NotFound"):
            raise
        # LocationConstraint is required for non-us-east-1 regions
        if clients.region == "us-east-1":
            clients.s3.create_bucket(Bucket=bucket)
        else:
            location = cast("BucketLocationConstraintType", clients.region)
            clients.s3.create_bucket(
                Bucket=bucket,
                CreateBucketConfiguration={"LocationConstraint": location},
            )
        clients.s3.put_bucket_encryption(
            Bucket=bucket,
            ServerSideEncryptionConfiguration={
                "Rules": [{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"}}]
            },
        )
        clients.s3.put_bucket_tagging(
            Bucket=bucket,
            Tagging={"TagSet": [{"Key": FleetTag.MANAGED, "Value": "true"}]},
        )
        log.info("Created asset bucket {bucket}", bucket=bucket)

    return bucket


@dataclass(frozen=True, slots=True)
class ScriptAsset:
    """A script stored in S3 under a content-addressed key."""

    os_type: OperatingSystemType
    bucket: str
    key: str
    file_name: str

    @classmethod
    def from_path_convention(
        cls,
        clients: AWSClients,
        os_type: OperatingSystemType,
        base_name: str,
        root_dir: Path,
    ) -> ScriptAsset:
        """Upload the OS-specific variant of ``base_name`` found under ``root_dir``.

        Raises:
            FileNotFoundError: If no script exists for the OS family.
        """
        path = script_path(os_type, base_name, root_dir)
        if not path.is_file():
            raise FileNotFoundError(f"No {os_type} script named {base_name} under {root_dir}")
        return cls.from_file(clients, os_type, path)

    @classmethod
    def from_file(cls, clients: AWSClients, os_type: OperatingSystemType, path: Path) -> ScriptAsset:
        content = path.read_bytes()
        digest = hashlib.sha256(content).hexdigest()
        key = f"assets/{digest[:16]}/{path.name}"
        bucket = ensure_asset_bucket(clients)
        clients.s3.put_object(Bucket=bucket, Key=key, Body=content)
        log.debug("Uploaded {file} to s3://{bucket}/{key}", file=path.name, bucket=bucket, key=key)
        return cls(os_type=os_type, bucket=bucket, key=key, file_name=path.name)

    @property
    def object_arn(self) -> str:
        return f"arn:aws:s3:::{self.bucket}/{self.key}"

    def grant_read(self, host: ClientHost) -> None:
        host.role.add_to_policy(
            f"{host.role.name}-asset-{self.file_name.replace('.', '-')}",
            PolicyStatement(actions=("s3:GetObject",), resources=(self.object_arn,)),
        )

    def execute_on(self, host: ClientHost, args: list[str] | tuple[str, ...] = ()) -> None:
        """Download and run the script during the host's boot.

        Arguments are passed through verbatim; quote them beforehand.
        """
        if host.os_type != self.os_type:
            raise ValueError(f"{self.file_name} is a {self.os_type} script, host runs {host.os_type}")
        self.grant_read(host)
        root = WINDOWS_BOOTSTRAP_DIR if self.os_type == OperatingSystemType.WINDOWS else BOOTSTRAP_DIR
        local = host.user_data.add_s3_download_command(self.bucket, self.key, f"{root}/{self.file_name}")
        host.user_data.add_execute_file_command(local, " ".join(args))
