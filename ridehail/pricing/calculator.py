"""
Fare calculation.

Two entry points:

* `calculate_price` - base price plus distance cost.
* `calculate_dynamic_price` - the same, then the peak-hour multiplier when the
  wall-clock time falls in a configured window, then the rain multiplier,
  then the category minimum as a floor.

Both round half-up to 2 decimal places.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Union

DEFAULT_RAIN_MULTIPLIER = 1.2
DEFAULT_PEAK_HOURS_MULTIPLIER = 1.5
DEFAULT_PEAK_HOURS = [
    {"start": "07:00", "end": "09:00"},
    {"start": "17:00", "end": "19:00"},
]


def round_money(value: float) -> float:
    """Round half-up to 2 decimal places."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def parse_clock(value: str) -> int:
    """Convert an "HH:mm" string into minutes since midnight."""
    try:
        hours_text, minutes_text = value.strip().split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time {value!r}, expected HH:mm")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time {value!r}, expected HH:mm")
    return hours * 60 + minutes


@dataclass(frozen=True)
class PeakWindow:
    start: str
    end: str

    def __post_init__(self):
        # Validate eagerly so bad catalog data fails when loaded
        parse_clock(self.start)
        parse_clock(self.end)

    def contains(self, minute_of_day: int) -> bool:
        start, end = parse_clock(self.start), parse_clock(self.end)
        if start <= end:
            return start <= minute_of_day <= end
        # Window crossing midnight, e.g. 22:00-02:00
        return minute_of_day >= start or minute_of_day <= end


@dataclass(frozen=True)
class PricingRules:
    """Rate table for one vehicle category."""

    base_price: float
    price_per_km: float
    min_price: float = 0.0
    rain_multiplier: float = DEFAULT_RAIN_MULTIPLIER
    peak_hours_multiplier: float = DEFAULT_PEAK_HOURS_MULTIPLIER
    peak_hours: List[PeakWindow] = field(default_factory=list)

    @classmethod
    def from_dynamic_pricing(
        cls,
        base_price: float,
        price_per_km: float,
        min_price: float,
        dynamic_pricing: Optional[Dict[str, Any]],
    ) -> "PricingRules":
        """Build rules from a stored `dynamicPricing` block, filling missing values with defaults."""
        block = dynamic_pricing or {}
        windows = block.get("peakHours")
        if not isinstance(windows, list):
            windows = DEFAULT_PEAK_HOURS
        return cls(
            base_price=float(base_price or 0),
            price_per_km=float(price_per_km or 0),
            min_price=float(min_price or 0),
            rain_multiplier=float(block.get("rainMultiplier") or DEFAULT_RAIN_MULTIPLIER),
            peak_hours_multiplier=float(block.get("peakHoursMultiplier") or DEFAULT_PEAK_HOURS_MULTIPLIER),
            peak_hours=[PeakWindow(w["start"], w["end"]) for w in windows],
        )

    @classmethod
    def from_category(cls, category) -> "PricingRules":
        """Build rules from a VehicleCategory row (or anything shaped like one)."""
        return cls.from_dynamic_pricing(
            category.base_price,
            category.price_per_km,
            category.min_price,
            category.dynamic_pricing,
        )


def _minute_of_day(current_time: Union[datetime, time]) -> int:
    return current_time.hour * 60 + current_time.minute


def is_peak_hour(peak_hours: Iterable[PeakWindow], current_time: Union[datetime, time]) -> bool:
    """True if the HH:mm of `current_time` falls inside any window (both ends inclusive)."""
    minute = _minute_of_day(current_time)
    return any(window.contains(minute) for window in peak_hours)


def calculate_price(distance_meters: float, price_per_km: float, base_price: float) -> float:
    """Fare without multipliers or minimum: base price plus distance cost."""
    if distance_meters < 0:
        raise ValueError("Distance must be non-negative")
    distance_km = distance_meters / 1000
    return round_money(base_price + distance_km * price_per_km)


def calculate_dynamic_price(
    rules: PricingRules,
    distance_meters: float,
    current_time: Union[datetime, time],
    is_raining: bool = False,
) -> float:
    """Fare for a category at a given wall-clock time and weather."""
    if distance_meters < 0:
        raise ValueError("Distance must be non-negative")

    price = rules.base_price + (distance_meters / 1000) * rules.price_per_km

    if is_peak_hour(rules.peak_hours, current_time):
        price *= rules.peak_hours_multiplier

    if is_raining:
        price *= rules.rain_multiplier

    price = max(price, rules.min_price)
    return round_money(price)


def estimate_duration_minutes(distance_meters: float, average_speed_kmh: float = 30.0) -> int:
    """Rough trip time when no route duration is available."""
    if distance_meters <= 0:
        return 0
    hours = (distance_meters / 1000) / average_speed_kmh
    return math.ceil(hours * 60)
