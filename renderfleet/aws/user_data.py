"""Instance user data composition.

Collaborators append commands to a ``UserData`` while the fleet is being
provisioned; the script is rendered once, when the scaling group is
activated. Commands are ``Op`` values so they can be resolved lazily.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable
from typing import TYPE_CHECKING

from renderfleet.constants import OperatingSystemType

if TYPE_CHECKING:
    from renderfleet.aws.scaling_group import ScalingGroup

type Op = str | Callable[[], str] | list[Op]
"""Operation type: either a literal string or a function returning a string."""


def resolve(op: Op) -> str:
    """Resolve an operation to its string representation."""
    match op:
        case str(op):
            return op
        case list(op):
            return "\n".join(resolve(o) for o in op)
        case None:
            return ""
        case _:
            return op()


_IMDS = "http://169.254.169.254/latest"


def _linux_complete_lifecycle(group: ScalingGroup) -> list[Op]:
    return [
        'TOKEN=$(curl -sX PUT "' + _IMDS + '/api/token" -H "X-aws-ec2-metadata-token-ttl-seconds: 300")',
        'INSTANCE_ID=$(curl -s -H "X-aws-ec2-metadata-token: $TOKEN" ' + _IMDS + "/meta-data/instance-id)",
        'if [ "$exitCode" -eq 0 ]; then RESULT=CONTINUE; else RESULT=ABANDON; fi',
        (
            f"aws autoscaling complete-lifecycle-action --region {group.region}"
            f" --auto-scaling-group-name {group.name}"
            f" --lifecycle-hook-name {group.lifecycle_hook_name}"
            ' --instance-id "$INSTANCE_ID" --lifecycle-action-result "$RESULT"'
        ),
    ]


def _windows_complete_lifecycle(group: ScalingGroup) -> list[Op]:
    return [
        '$token = Invoke-RestMethod -Method Put -Uri "' + _IMDS + '/api/token"'
        ' -Headers @{"X-aws-ec2-metadata-token-ttl-seconds" = "300"}',
        '$instanceId = Invoke-RestMethod -Uri "' + _IMDS + '/meta-data/instance-id"'
        ' -Headers @{"X-aws-ec2-metadata-token" = $token}',
        '$result = if ($success) { "CONTINUE" } else { "ABANDON" }',
        (
            f"Complete-ASLifecycleAction -Region {group.region}"
            f" -AutoScalingGroupName {group.name}"
            f" -LifecycleHookName {group.lifecycle_hook_name}"
            " -InstanceId $instanceId -LifecycleActionResult $result"
        ),
    ]


class UserData:
    """Boot script for a Linux (bash) or Windows (PowerShell) instance."""

    def __init__(self, os_type: OperatingSystemType) -> None:
        self.os_type = os_type
        self._commands: list[Op] = []
        self._on_exit: list[Op] = []

    @classmethod
    def for_linux(cls) -> UserData:
        return cls(OperatingSystemType.LINUX)

    @classmethod
    def for_windows(cls) -> UserData:
        return cls(OperatingSystemType.WINDOWS)

    def add_commands(self, *ops: Op) -> None:
        self._commands.extend(ops)

    def add_on_exit_commands(self, *ops: Op) -> None:
        self._on_exit.extend(ops)

    def add_s3_download_command(self, bucket: str, key: str, local_file: str) -> str:
        """Download an object at boot. Returns the local path."""
        if self.os_type == OperatingSystemType.WINDOWS:
            self.add_commands(
                f"mkdir (Split-Path -Path '{local_file}') -ea 0",
                f"Read-S3Object -BucketName '{bucket}' -key '{key}' -file '{local_file}' -ErrorAction Stop",
            )
        else:
            self.add_commands(
                f"mkdir -p $(dirname '{local_file}')",
                f"aws s3 cp 's3://{bucket}/{key}' '{local_file}'",
            )
        return local_file

    def add_execute_file_command(self, file_path: str, arguments: str = "") -> None:
        """Run a previously downloaded script, failing the boot if it fails."""
        if self.os_type == OperatingSystemType.WINDOWS:
            self.add_commands(
                f"&'{file_path}' {arguments}".rstrip(),
                "if (!$?) { Write-Error 'Failed to execute the file \"" + file_path + "\"' -ErrorAction Stop }",
            )
        else:
            self.add_commands(
                "set -e",
                f"chmod +x {shlex.quote(file_path)}",
                f"{shlex.quote(file_path)} {arguments}".rstrip(),
            )

    def add_signal_on_exit_command(self, group: ScalingGroup) -> None:
        """Report the boot outcome to the scaling group's launch lifecycle hook.

        The instance completes the lifecycle action with CONTINUE when the
        script exits successfully and ABANDON otherwise, so a failing worker
        configuration fails the launch instead of passing silently.
        """
        if self.os_type == OperatingSystemType.WINDOWS:
            self.add_on_exit_commands(*_windows_complete_lifecycle(group))
        else:
            self.add_on_exit_commands(*_linux_complete_lifecycle(group))

    def render(self) -> str:
        if self.os_type == OperatingSystemType.WINDOWS:
            return self._render_windows()
        return self._render_linux()

    def _render_linux(self) -> str:
        lines = ["#!/bin/bash"]
        if self._on_exit:
            lines.extend([
                "function exitTrap(){",
                "exitCode=$?",
                *(resolve(op) for op in self._on_exit),
                "}",
                "trap exitTrap EXIT",
            ])
        lines.extend(resolve(op) for op in self._commands)
        return "\n".join(lines)

    def _render_windows(self) -> str:
        lines = ["<powershell>"]
        if self._on_exit:
            lines.extend([
                'trap {',
                '$success=($PSItem.Exception.Message -eq "Success")',
                *(resolve(op) for op in self._on_exit),
                'break',
                '}',
            ])
        lines.extend(resolve(op) for op in self._commands)
        if self._on_exit:
            lines.append('throw "Success"')
        lines.append("</powershell>")
        return "\n".join(lines)
