"""Render options and the numeric formatting policy."""
from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional

DEFAULT_FONT_SIZE = 14
DEFAULT_MAX_LEVELS = 10
TITLE_FONT_SIZE = 40
_MAX_FLOAT_DIGITS = 330


@dataclass(frozen=True)
class RenderOptions:
    """Immutable knobs for one render; rounding is off while ``decimal_places`` is None."""

    decimal_places: Optional[int] = None
    font_size: int = DEFAULT_FONT_SIZE
    max_levels: int = DEFAULT_MAX_LEVELS
    detail: bool = False
    internal: bool = False
    title: Optional[str] = None

    def __post_init__(self) -> None:
        if self.decimal_places is not None and self.decimal_places < 0:
            raise ValueError(f"decimal_places must be >= 0 (got {self.decimal_places})")
        if self.font_size <= 0:
            raise ValueError(f"font_size must be > 0 (got {self.font_size})")
        if self.max_levels < 0:
            raise ValueError(f"max_levels must be >= 0 (got {self.max_levels})")

    @property
    def rounding(self) -> bool:
        return self.decimal_places is not None

    def round_value(self, value: float) -> float:
        if self.decimal_places is None or not math.isfinite(value):
            return value
        return float(_quantize(value, self.decimal_places))

    def format_number(self, value: float) -> str:
        value = float(value)
        if not math.isfinite(value):
            return repr(value)
        if self.decimal_places is None:
            return repr(value)
        return format(_quantize(value, self.decimal_places), "f")


def _quantize(value: float, places: int) -> Decimal:
    # repr() is the shortest string that round-trips, so 0.15 rounds to 0.2 rather than 0.1.
    quantum = Decimal(1).scaleb(-places)
    context = Context(prec=_MAX_FLOAT_DIGITS + places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP, context=context)
    if rounded.is_zero():
        rounded = abs(rounded)
    return rounded


__all__ = ["RenderOptions", "DEFAULT_FONT_SIZE", "DEFAULT_MAX_LEVELS", "TITLE_FONT_SIZE"]
