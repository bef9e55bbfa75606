"""Day count conventions used to turn dates into curve times."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict

logger = logging.getLogger(__name__)

DayCountFunc = Callable[[date, date], float]


def _act_365f(start: date, end: date) -> float:
    return (end - start).days / 365.0


def _act_360(start: date, end: date) -> float:
    return (end - start).days / 360.0


def _thirty_u_360(start: date, end: date) -> float:
    d1 = min(start.day, 30)
    d2 = end.day
    if d2 == 31 and d1 == 30:
        d2 = 30
    days = 360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)
    return days / 360.0


_REGISTRY: Dict[str, DayCountFunc] = {
    "ACT/365F": _act_365f,
    "ACT/360": _act_360,
    "30U/360": _thirty_u_360,
}


@dataclass(frozen=True, slots=True)
class DayCount:
    name: str

    def year_fraction(self, start: date, end: date) -> float:
        if end < start:
            raise ValueError(f"{self.name}: end {end} before start {start}")
        return _REGISTRY[self.name](start, end)

    def relative_year_fraction(self, start: date, end: date) -> float:
        """Signed year fraction, negative when ``end`` is before ``start``."""
        if end < start:
            return -_REGISTRY[self.name](end, start)
        return _REGISTRY[self.name](start, end)

    def __str__(self) -> str:
        return self.name


def get_day_count(name: str) -> DayCount:
    """Return the day count registered under ``name``."""
    key = name.upper()
    if key not in _REGISTRY:
        raise ValueError(f"Unsupported day count convention: {name}")
    return DayCount(key)


def register_day_count(name: str, func: DayCountFunc) -> None:
    """Register a custom day-count convention."""
    key = name.upper()
    if key in _REGISTRY:
        raise ValueError(f"Day count '{name}' already registered")
    logger.debug("Registering day count %s", key)
    _REGISTRY[key] = func


ACT_365F = DayCount("ACT/365F")
ACT_360 = DayCount("ACT/360")
THIRTY_U_360 = DayCount("30U/360")
