"""
Rhythm primitives - TimeSignature and exact beat arithmetic.

All musical time is measured in quarter-note beats and held as Fraction,
so triplets and dotted values never accumulate floating point error.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import ClassVar

# Finest subdivision accepted from generators (covers 32nds and sextuplets)
MAX_DENOMINATOR = 48


def to_beats(value: Fraction | int | float | str, exact: bool = False) -> Fraction:
    """
    Convert a beat value to an exact Fraction.

    Accepts ints, Fractions, strings like '3/2' or '0.75', and floats. Floats
    are snapped to the nearest value with denominator <= MAX_DENOMINATOR; so are
    strings unless ``exact`` is set, which keeps serialized fractions as written.

    Raises:
        ValueError: If the value cannot be interpreted as a number of beats
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid beat value: {value!r}")
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError(f"Invalid beat value: {value!r}")
        return Fraction(value).limit_denominator(MAX_DENOMINATOR)
    if isinstance(value, str):
        try:
            parsed = Fraction(value.strip())
            return parsed if exact else parsed.limit_denominator(MAX_DENOMINATOR)
        except (ValueError, ZeroDivisionError) as e:
            raise ValueError(f"Invalid beat value: {value!r}") from e
    raise ValueError(f"Invalid beat value: {value!r}")


def format_beats(value: Fraction) -> str:
    """Serialize beats as '3/2' (or '2' for whole numbers)."""
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


def on_grid(value: Fraction, grid: Fraction) -> bool:
    """Whether value is an exact multiple of grid."""
    return (value / grid).denominator == 1


@dataclass(frozen=True)
class TimeSignature:
    """
    A time signature: numerator over a note-value denominator.

    bar_length is expressed in quarter-note beats, so 6/8 is 3 beats long.
    """

    numerator: int
    denominator: int

    COMMON_TIME: ClassVar[TimeSignature]
    WALTZ: ClassVar[TimeSignature]
    SIX_EIGHT: ClassVar[TimeSignature]

    def __post_init__(self) -> None:
        if self.numerator <= 0:
            raise ValueError(f"Beats per bar must be positive, got {self.numerator}")
        if self.denominator not in (1, 2, 4, 8, 16):
            raise ValueError(f"Unsupported time signature denominator: {self.denominator}")

    @property
    def bar_length(self) -> Fraction:
        """Length of one bar in quarter-note beats."""
        return Fraction(self.numerator * 4, self.denominator)

    def bar_of(self, offset: Fraction) -> int:
        """0-based bar index containing a beat offset."""
        return int(offset // self.bar_length)

    def bar_end(self, offset: Fraction) -> Fraction:
        """Beat offset of the barline closing the bar that contains offset."""
        return (self.bar_of(offset) + 1) * self.bar_length

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"

    @classmethod
    def parse(cls, notation: str) -> TimeSignature:
        """Parse '4/4', '3/4', '6/8'."""
        parts = notation.strip().split("/")
        if len(parts) != 2:
            raise ValueError(f"Invalid time signature format: {notation}")
        try:
            return cls(int(parts[0]), int(parts[1]))
        except ValueError as e:
            raise ValueError(f"Invalid time signature: {notation}: {e}") from e


TimeSignature.COMMON_TIME = TimeSignature(4, 4)
TimeSignature.WALTZ = TimeSignature(3, 4)
TimeSignature.SIX_EIGHT = TimeSignature(6, 8)
