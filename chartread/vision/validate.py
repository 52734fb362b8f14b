"""Hard validation gate between untrusted model JSON and ``ChartRead``.

Every check returns a ``Check`` instead of raising. Checks run left to right and
the first failure wins. Nothing is repaired: the only transformation applied to
good data is trimming strings and turning numeric strings into floats.
"""
from __future__ import annotations

import math
import reprlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, cast

from .schema import CONFIDENCES, REGIMES, ChartRead, PriceLevel, RawChartRead, ValidationResult

LEVEL_RANGE_FACTOR = 10.0     # levels must sit within 10x of current price
SUPPORT_CEILING = 1.1         # support may not be >10% above current price
RESISTANCE_FLOOR = 0.9        # resistance may not be >10% below current price


@dataclass(frozen=True)
class Check:
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _fail(error: str) -> Check:
    return Check(error=error)


def _shown(value: Any) -> str:
    """Short rendering of a rejected value. Ints past the str() digit limit cannot be printed."""
    try:
        return reprlib.repr(value)
    except ValueError:
        return f"<{type(value).__name__}>"


FieldCheck = Callable[[RawChartRead, Dict], Check]


def to_number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None. Booleans are not numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        x = float(value)
    except (ValueError, OverflowError):
        return None
    return x if math.isfinite(x) else None


# ----------------------------
# Field checks
# ----------------------------
def _text(key: str, error: str, *, allow_empty: bool = False) -> FieldCheck:
    def check(raw: RawChartRead, clean: Dict) -> Check:
        value = raw.get(key)
        if not isinstance(value, str):
            return _fail(error)
        if not allow_empty and not value.strip():
            return _fail(error)
        return Check(value.strip())

    return check


def _choice(key: str, allowed: Tuple[str, ...]) -> FieldCheck:
    def check(raw: RawChartRead, clean: Dict) -> Check:
        value = raw.get(key)
        # exact match only: "Uptrend" or " range" are rejected
        if not isinstance(value, str) or value not in allowed:
            return _fail(f"Invalid {key}: {_shown(value)}")
        return Check(value)

    return check


def _current_price(raw: RawChartRead, clean: Dict) -> Check:
    price = to_number(raw.get("currentPrice"))
    if price is None or price <= 0:
        return _fail("Invalid or missing currentPrice")
    return Check(price)


def check_level(value: Any, name: str, current_price: float) -> Check:
    """Optional level: None is fine, anything else must be a fully valid level."""
    if value is None:
        return Check(None)
    if not isinstance(value, dict):
        return _fail(f"{name} is not an object")

    price = to_number(value.get("price"))
    if price is None or price <= 0:
        return _fail(f"{name} has invalid price: {_shown(value.get('price'))}")

    if price > current_price * LEVEL_RANGE_FACTOR or price < current_price / LEVEL_RANGE_FACTOR:
        return _fail(f"{name} price {price} is unreasonably far from current {current_price}")

    label = value.get("label")
    if not isinstance(label, str) or not label.strip():
        return _fail(f"{name} has invalid or missing label")

    return Check(PriceLevel(price=price, label=label.strip()))


def _level(key: str) -> FieldCheck:
    def check(raw: RawChartRead, clean: Dict) -> Check:
        return check_level(raw.get(key), key, clean["currentPrice"])

    return check


# (output key, check). Order is the order of evaluation.
FIELD_CHECKS: Tuple[Tuple[str, FieldCheck], ...] = (
    ("story", _text("story", "Missing or empty story")),
    ("watchAbove", _text("watchAbove", "Missing watchAbove")),
    ("watchBelow", _text("watchBelow", "Missing watchBelow")),
    ("confidenceReason", _text("confidenceReason", "Missing confidenceReason", allow_empty=True)),
    ("regime", _choice("regime", REGIMES)),
    ("confidence", _choice("confidence", CONFIDENCES)),
    ("currentPrice", _current_price),
    ("support", _level("support")),
    ("resistance", _level("resistance")),
    ("pivot", _level("pivot")),
)


# ----------------------------
# Cross-field sanity
# ----------------------------
def _support_below_ceiling(clean: Dict) -> Check:
    support = clean["support"]
    if support and support.price > clean["currentPrice"] * SUPPORT_CEILING:
        return _fail("Support is above current price")
    return Check()


def _resistance_above_floor(clean: Dict) -> Check:
    resistance = clean["resistance"]
    if resistance and resistance.price < clean["currentPrice"] * RESISTANCE_FLOOR:
        return _fail("Resistance is below current price")
    return Check()


def _support_below_resistance(clean: Dict) -> Check:
    support, resistance = clean["support"], clean["resistance"]
    if support and resistance and support.price >= resistance.price:
        return _fail("Support is not below resistance")
    return Check()


CROSS_CHECKS: Tuple[Tuple[str, Callable[[Dict], Check]], ...] = (
    ("support", _support_below_ceiling),
    ("resistance", _resistance_above_floor),
    ("support", _support_below_resistance),
)


def validate(raw: Any) -> ValidationResult:
    """Turn untrusted model output into a ChartRead or a failure naming the field.

    Never raises, never coerces a bad value into a good one.
    """
    if not isinstance(raw, dict):
        return ValidationResult.failure("Response is not an object")

    clean: Dict[str, Any] = {}
    fields = cast(RawChartRead, raw)
    for key, check in FIELD_CHECKS:
        result = check(fields, clean)
        if not result.ok:
            return ValidationResult.failure(result.error, key)
        clean[key] = result.value

    for key, check in CROSS_CHECKS:
        result = check(clean)
        if not result.ok:
            return ValidationResult.failure(result.error, key)

    return ValidationResult.success(ChartRead.model_validate(clean))
