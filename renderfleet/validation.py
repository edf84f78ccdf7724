"""Fleet configuration validation.

Checks run in a fixed order (spot price, groups, pools, region, capacity)
and stop at the first violation. Nothing here touches AWS, so a rejected
configuration never leaves resources behind.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from renderfleet.constants import SPOT_PRICE_MAX_LIMIT, SPOT_PRICE_MIN_LIMIT
from renderfleet.exceptions import (
    InvalidCapacityError,
    InvalidRegionError,
    InvalidSpotPriceError,
    InvalidTagError,
)

if TYPE_CHECKING:
    from renderfleet.config import FleetConfig

# "none" is the render manager's default group/pool and cannot be assigned.
TAG_PATTERN: Final = re.compile(r"(?!none$)[A-Za-z0-9_-]+", re.IGNORECASE)
# "none", "all" and "unrecognized" are reserved region names.
REGION_PATTERN: Final = re.compile(r"(?!none$|all$|unrecognized$)[A-Za-z0-9_-]+", re.IGNORECASE)


def validate_spot_price(spot_price: float | Decimal | None) -> None:
    if spot_price is None:
        return
    # Compare as decimals: float(0.001) is slightly above Decimal("0.001").
    price = Decimal(str(spot_price))
    if not price.is_finite():
        raise InvalidSpotPriceError(spot_price, SPOT_PRICE_MIN_LIMIT, SPOT_PRICE_MAX_LIMIT)
    if not Decimal(str(SPOT_PRICE_MIN_LIMIT)) <= price <= Decimal(str(SPOT_PRICE_MAX_LIMIT)):
        raise InvalidSpotPriceError(spot_price, SPOT_PRICE_MIN_LIMIT, SPOT_PRICE_MAX_LIMIT)


def validate_tags(values: Iterable[str], property: str) -> None:  # noqa: A002
    for value in values:
        if not TAG_PATTERN.fullmatch(value):
            raise InvalidTagError(property, value)


def validate_region(region: str | None) -> None:
    if region and not REGION_PATTERN.fullmatch(region):
        raise InvalidRegionError(region)


def validate_capacity(min_capacity: int, max_capacity: int, desired_capacity: int | None) -> None:
    if min_capacity < 0:
        raise InvalidCapacityError("min_capacity", min_capacity, "Must be zero or more.")
    if max_capacity < min_capacity:
        raise InvalidCapacityError(
            "max_capacity", max_capacity, f"Must be at least min_capacity ({min_capacity})."
        )
    if desired_capacity is not None and not min_capacity <= desired_capacity <= max_capacity:
        raise InvalidCapacityError(
            "desired_capacity",
            desired_capacity,
            f"Must be between min_capacity ({min_capacity}) and max_capacity ({max_capacity}).",
        )


def validate_config(config: FleetConfig) -> None:
    """Reject a malformed fleet configuration.

    Raises:
        InvalidSpotPriceError: spot price outside [0.001, 255].
        InvalidTagError: a group or pool is malformed or "none".
        InvalidRegionError: region is malformed or reserved.
        InvalidCapacityError: capacity bounds are inconsistent.
    """
    validate_spot_price(config.spot_price)
    validate_tags(config.groups, "groups")
    validate_tags(config.pools, "pools")
    validate_region(config.region)
    validate_capacity(config.min_capacity, config.effective_max_capacity, config.desired_capacity)
