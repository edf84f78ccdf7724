"""Custom exception hierarchy for renderfleet.

All renderfleet-specific exceptions inherit from RenderFleetError, enabling
users to catch them with a single except clause. Failures from the AWS APIs
are not wrapped: botocore's ClientError reaches the caller unmodified.
"""

from __future__ import annotations


class RenderFleetError(Exception):
    """Base exception for all renderfleet errors."""


class ConfigurationError(RenderFleetError):
    """Raised for invalid configuration or missing required settings."""


class InvalidSpotPriceError(ConfigurationError):
    """Raised when the spot price is outside the allowed range."""

    def __init__(self, value: object, minimum: float, maximum: float) -> None:
        self.property = "spot_price"
        self.value = value
        super().__init__(
            f"Invalid value: {value} for property 'spot_price'. "
            f"Valid values can be any decimal between {minimum} and {maximum}."
        )


class InvalidTagError(ConfigurationError):
    """Raised when a group or pool name is malformed or reserved."""

    def __init__(self, property: str, value: str) -> None:  # noqa: A002
        self.property = property
        self.value = value
        super().__init__(
            f"Invalid value: {value} for property '{property}'. "
            "Valid characters are A-Z, a-z, 0-9, - and _. "
            "Also, group 'none' is reserved as the default group."
        )


class InvalidRegionError(ConfigurationError):
    """Raised when the worker region is malformed or reserved."""

    def __init__(self, value: str) -> None:
        self.property = "region"
        self.value = value
        super().__init__(
            f"Invalid value: {value} for property 'region'. "
            "Valid characters are A-Z, a-z, 0-9, - and _. "
            "'All', 'none' and 'unrecognized' are reserved names that cannot be used."
        )


class InvalidCapacityError(ConfigurationError):
    """Raised when capacity bounds are inconsistent."""

    def __init__(self, property: str, value: int, reason: str) -> None:  # noqa: A002
        self.property = property
        self.value = value
        super().__init__(f"Invalid value: {value} for property '{property}'. {reason}")


class SizeConversionError(ConfigurationError):
    """Raised when a size does not convert to a whole number of the target unit."""

    def __init__(self, size: object, unit: str) -> None:
        self.size = size
        self.unit = unit
        super().__init__(f"'{size}' cannot be converted into a whole number of {unit}.")
