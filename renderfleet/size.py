"""Storage sizes with exact unit conversion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from fractions import Fraction

from renderfleet.exceptions import SizeConversionError

__all__ = ["Size", "SizeUnit"]

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(MiB|GiB|TiB)\s*$")


class SizeUnit(IntEnum):
    """Binary storage units, valued in MiB."""

    MEBIBYTES = 1
    GIBIBYTES = 1024
    TEBIBYTES = 1024 * 1024

    @property
    def suffix(self) -> str:
        return {1: "MiB", 1024: "GiB", 1024 * 1024: "TiB"}[self.value]


_SUFFIXES = {unit.suffix: unit for unit in SizeUnit}


@dataclass(frozen=True, slots=True)
class Size:
    """An amount of storage.

    Example:
        >>> Size.gibibytes(100).to_gibibytes()
        100
        >>> Size.parse("2TiB").to_gibibytes()
        2048
    """

    amount: int | float
    unit: SizeUnit

    @classmethod
    def mebibytes(cls, amount: int | float) -> Size:
        return cls(amount, SizeUnit.MEBIBYTES)

    @classmethod
    def gibibytes(cls, amount: int | float) -> Size:
        return cls(amount, SizeUnit.GIBIBYTES)

    @classmethod
    def tebibytes(cls, amount: int | float) -> Size:
        return cls(amount, SizeUnit.TEBIBYTES)

    @classmethod
    def parse(cls, text: str) -> Size:
        """Parse strings like ``"50GiB"`` or ``"512 MiB"``."""
        match = _SIZE_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid size: {text!r}. Expected e.g. '50GiB'")
        raw, suffix = match.groups()
        amount: int | float = float(raw) if "." in raw else int(raw)
        return cls(amount, _SUFFIXES[suffix])

    def to_gibibytes(self) -> int:
        """Convert to a whole number of GiB.

        Raises:
            SizeConversionError: If the size is not a whole number of GiB.
        """
        value = Fraction(str(self.amount)) * self.unit.value / SizeUnit.GIBIBYTES
        if value.denominator != 1:
            raise SizeConversionError(self, "GiB")
        return int(value)

    def __str__(self) -> str:
        return f"{self.amount}{self.unit.suffix}"
