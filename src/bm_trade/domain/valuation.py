"""Trade-points valuation — pure, deterministic, no I/O.

points = base * condition_mult * quality_mult * demand_bonus - age_depreciation

  condition_mult:   new 1.0, like_new 0.9, good 0.75, fair 0.6, poor 0.4 (unknown 0.5)
  quality_mult:     0.5 + quality / 10           (0.6 .. 1.5 for quality 1..10)
  demand_bonus:     per-category, 1.0 when not listed
  age_depreciation: 5% of base per year, capped at 25% once the item is over 5 years old

The result is rounded half-up and floored at 1 point. Clients depend on these
exact numbers, so any change to the tables is a breaking change.
"""

import math
from dataclasses import dataclass
from enum import Enum

CONDITION_MULTIPLIERS: dict[str, float] = {
    "new": 1.0,
    "like_new": 0.9,
    "good": 0.75,
    "fair": 0.6,
    "poor": 0.4,
}
UNKNOWN_CONDITION_MULTIPLIER = 0.5

DEMAND_BONUSES: dict[str, float] = {
    "Electronics": 1.2,
    "Vehicles": 1.5,
    "Jewelry": 1.3,
    "Art": 1.4,
    "Services": 1.1,
}
DEFAULT_DEMAND_BONUS = 1.0

DEPRECIATION_PER_YEAR = 0.05
DEPRECIATION_CAP_YEARS = 5
MAX_DEPRECIATION = 0.25

DEFAULT_AGE_MONTHS = 0.0
DEFAULT_QUALITY = 5.0
MIN_TRADE_POINTS = 1


@dataclass
class Valuation:
    base_value: float
    currency: str = "USD"
    age_months: float = DEFAULT_AGE_MONTHS
    quality: float = DEFAULT_QUALITY
    brand: str | None = None


def _key(value: str | Enum) -> str:
    # str-Enums hash by member name, so lookups must use the raw value
    return value.value if isinstance(value, Enum) else value


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def age_depreciation(base_value: float, age_months: float) -> float:
    years = age_months / 12
    if years <= DEPRECIATION_CAP_YEARS:
        return base_value * DEPRECIATION_PER_YEAR * years
    return base_value * MAX_DEPRECIATION


def compute_trade_points(
    valuation: Valuation,
    condition: str | Enum,
    category: str | Enum,
) -> int:
    """Return the trade-point value of an item. Always >= 1."""
    base_value = valuation.base_value
    age_months = valuation.age_months if valuation.age_months is not None else DEFAULT_AGE_MONTHS
    quality = valuation.quality if valuation.quality is not None else DEFAULT_QUALITY

    condition_multiplier = CONDITION_MULTIPLIERS.get(_key(condition), UNKNOWN_CONDITION_MULTIPLIER)
    quality_multiplier = 0.5 + quality / 10
    demand_bonus = DEMAND_BONUSES.get(_key(category), DEFAULT_DEMAND_BONUS)

    points = (
        base_value * condition_multiplier * quality_multiplier * demand_bonus
        - age_depreciation(base_value, age_months)
    )
    return max(_round_half_up(points), MIN_TRADE_POINTS)
