"""AWS provider configuration.

Immutable configuration dataclass describing where fleets are provisioned.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AWS:
    """AWS provider configuration.

    Example:
        >>> from renderfleet.aws import AWS
        >>> config = AWS(region="us-west-2")

    Args:
        region: AWS region for resources. Default: us-east-1
        prefix: Prefix for account-level resource names (asset bucket).
        asset_bucket: Bucket holding bootstrap scripts. If None, one named
            ``{prefix}-assets-{account}-{region}`` is created on demand.
    """

    region: str = "us-east-1"
    prefix: str = "renderfleet"
    asset_bucket: str | None = None
