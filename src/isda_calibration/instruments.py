"""Calibration instruments reduced to payment times, amounts and one free rate.

Times are year fractions on the curve day count, measured from the curve
base date. Instruments are immutable; quote resolution returns a copy with
the rate or coupon filled in.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import List, Tuple

import numpy as np

from .daycount import ACT_360, ACT_365F, THIRTY_U_360, DayCount

ONE_DAY = timedelta(days=1)


def add_months(start: date, months: int) -> date:
    """Unadjusted month arithmetic, clipping to the end of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def year_fractions(maturity: float, frequency: int) -> np.ndarray:
    count = int(round(maturity * frequency))
    if count <= 0:
        return np.array([], dtype=float)
    return np.arange(1, count + 1) / frequency


# ----------------------------------------------------------------------
# Discount curve instruments
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TermDeposit:
    """Single cash flow deposit starting at the spot date."""

    maturity: float
    year_fraction: float
    rate: float = 0.0

    def with_rate(self, rate: float) -> "TermDeposit":
        return replace(self, rate=rate)

    def zero_rate(self) -> float:
        return float(np.log1p(self.rate * self.year_fraction) / self.maturity)

    def par_rate(self, curve) -> float:
        return (1.0 / curve.df(self.maturity) - 1.0) / self.year_fraction

    @classmethod
    def from_tenor(
        cls,
        spot_date: date,
        months: int,
        rate: float = 0.0,
        *,
        curve_day_count: DayCount = ACT_365F,
        accrual_day_count: DayCount = ACT_360,
    ) -> "TermDeposit":
        end = add_months(spot_date, months)
        return cls(
            maturity=curve_day_count.year_fraction(spot_date, end),
            year_fraction=accrual_day_count.year_fraction(spot_date, end),
            rate=rate,
        )


@dataclass(frozen=True, slots=True)
class FixedFloatSwap:
    """Spot-starting par swap; the floating leg is worth ``1 - P(maturity)``."""

    payment_times: Tuple[float, ...]
    year_fractions: Tuple[float, ...]
    rate: float = 0.0

    def __post_init__(self) -> None:
        if len(self.payment_times) == 0:
            raise ValueError("swap needs at least one fixed payment")
        if len(self.payment_times) != len(self.year_fractions):
            raise ValueError("payment times and year fractions length mismatch")
        if any(t2 <= t1 for t1, t2 in zip(self.payment_times, self.payment_times[1:])):
            raise ValueError("payment times must be strictly increasing")
        object.__setattr__(self, "payment_times", tuple(float(t) for t in self.payment_times))
        object.__setattr__(self, "year_fractions", tuple(float(y) for y in self.year_fractions))

    @property
    def maturity(self) -> float:
        return self.payment_times[-1]

    def with_rate(self, rate: float) -> "FixedFloatSwap":
        return replace(self, rate=rate)

    def annuity(self, curve) -> float:
        return sum(yf * curve.df(t) for t, yf in zip(self.payment_times, self.year_fractions))

    def par_value(self, curve) -> float:
        return self.rate * self.annuity(curve) + curve.df(self.maturity) - 1.0

    def par_rate(self, curve) -> float:
        return (1.0 - curve.df(self.maturity)) / self.annuity(curve)

    @classmethod
    def from_tenor(
        cls,
        spot_date: date,
        years: int,
        rate: float = 0.0,
        *,
        frequency_months: int = 12,
        curve_day_count: DayCount = ACT_365F,
        fixed_day_count: DayCount = THIRTY_U_360,
    ) -> "FixedFloatSwap":
        count = years * 12 // frequency_months
        dates = [add_months(spot_date, frequency_months * k) for k in range(count + 1)]
        return cls(
            payment_times=tuple(curve_day_count.year_fraction(spot_date, d) for d in dates[1:]),
            year_fractions=tuple(fixed_day_count.year_fraction(d1, d2) for d1, d2 in zip(dates, dates[1:])),
            rate=rate,
        )


# ----------------------------------------------------------------------
# Credit instruments
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CdsCoupon:
    eff_start: float
    eff_end: float
    payment_time: float
    year_frac: float

    @property
    def yf_ratio(self) -> float:
        return self.year_frac / (self.eff_end - self.eff_start)


@dataclass(frozen=True, slots=True)
class CdsInstrument:
    """Analytic description of a CDS as seen from the trade date."""

    coupons: Tuple[CdsCoupon, ...]
    effective_protection_start: float
    protection_end: float
    cash_settle_time: float = 0.0
    accrued_year_fraction: float = 0.0
    lgd: float = 0.6
    pay_accrued_on_default: bool = True
    coupon: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.lgd <= 1.0:
            raise ValueError(f"lgd must be in [0, 1], was {self.lgd}")
        if self.protection_end <= self.effective_protection_start:
            raise ValueError("protection end must be after protection start")
        object.__setattr__(self, "coupons", tuple(self.coupons))

    @property
    def maturity(self) -> float:
        return self.protection_end

    @property
    def recovery_rate(self) -> float:
        return 1.0 - self.lgd

    def with_recovery_rate(self, recovery_rate: float) -> "CdsInstrument":
        return replace(self, lgd=1.0 - recovery_rate)

    def accrued_premium(self, coupon: float) -> float:
        return self.accrued_year_fraction * coupon

    @classmethod
    def standard(
        cls,
        maturity: float,
        coupon: float = 0.0,
        *,
        frequency: int = 4,
        recovery_rate: float = 0.4,
        pay_accrued_on_default: bool = True,
    ) -> "CdsInstrument":
        """Regular CDS starting today with ``frequency`` equal coupon periods a year."""
        ends = year_fractions(maturity, frequency)
        if ends.size == 0:
            raise ValueError(f"maturity {maturity} too short for frequency {frequency}")
        starts = np.concatenate(([0.0], ends[:-1]))
        coupons = tuple(
            CdsCoupon(eff_start=float(s), eff_end=float(e), payment_time=float(e), year_frac=float(e - s))
            for s, e in zip(starts, ends)
        )
        return cls(
            coupons=coupons,
            effective_protection_start=0.0,
            protection_end=float(ends[-1]),
            lgd=1.0 - recovery_rate,
            pay_accrued_on_default=pay_accrued_on_default,
            coupon=coupon,
        )

    @classmethod
    def from_dates(
        cls,
        trade_date: date,
        accrual_start: date,
        maturity: date,
        coupon: float = 0.0,
        *,
        frequency_months: int = 3,
        step_in_days: int = 1,
        cash_settle_days: int = 3,
        recovery_rate: float = 0.4,
        protection_start_of_day: bool = True,
        pay_accrued_on_default: bool = True,
        curve_day_count: DayCount = ACT_365F,
        accrual_day_count: DayCount = ACT_360,
    ) -> "CdsInstrument":
        """Build from unadjusted dates; the calendar is ignored (calendar days only)."""
        if maturity <= accrual_start:
            raise ValueError("maturity must be after accrual start")

        def time(d: date) -> float:
            return curve_day_count.relative_year_fraction(trade_date, d)

        step_in = trade_date + timedelta(days=step_in_days)
        dates: List[date] = []
        k = 0
        current = accrual_start
        while current < maturity:
            dates.append(current)
            k += 1
            current = add_months(accrual_start, frequency_months * k)
        dates.append(maturity)

        sod = ONE_DAY if protection_start_of_day else timedelta(0)
        coupons: List[CdsCoupon] = []
        accrued = 0.0
        n_periods = len(dates) - 1
        for i, (start, end) in enumerate(zip(dates, dates[1:])):
            last = i == n_periods - 1
            accrual_end = end + ONE_DAY if last else end
            if accrual_end <= step_in:
                continue
            if start < step_in:
                accrued = accrual_day_count.year_fraction(start, step_in)
            coupons.append(
                CdsCoupon(
                    eff_start=time(start - sod),
                    eff_end=time(end if last else end - sod),
                    payment_time=time(end),
                    year_frac=accrual_day_count.year_fraction(start, accrual_end),
                )
            )
        return cls(
            coupons=tuple(coupons),
            effective_protection_start=max(time(accrual_start - sod), time(step_in - sod)),
            protection_end=time(maturity),
            cash_settle_time=time(trade_date + timedelta(days=cash_settle_days)),
            accrued_year_fraction=accrued,
            lgd=1.0 - recovery_rate,
            pay_accrued_on_default=pay_accrued_on_default,
            coupon=coupon,
        )


# ----------------------------------------------------------------------
# Bonds
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Bond:
    """Fixed cash flows per unit notional, principal included in the last amount."""

    payment_times: Tuple[float, ...]
    payment_amounts: Tuple[float, ...]
    recovery_rate: float
    accrued_interest: float = 0.0

    def __post_init__(self) -> None:
        if len(self.payment_times) == 0:
            raise ValueError("bond needs at least one payment")
        if len(self.payment_times) != len(self.payment_amounts):
            raise ValueError("payment times and amounts length mismatch")
        if not 0.0 <= self.recovery_rate < 1.0:
            raise ValueError(f"recovery rate must be in [0, 1), was {self.recovery_rate}")
        object.__setattr__(self, "payment_times", tuple(float(t) for t in self.payment_times))
        object.__setattr__(self, "payment_amounts", tuple(float(a) for a in self.payment_amounts))

    @property
    def maturity(self) -> float:
        return self.payment_times[-1]

    @classmethod
    def fixed_coupon(
        cls,
        maturity: float,
        coupon: float,
        *,
        frequency: int = 2,
        recovery_rate: float = 0.4,
        accrued_interest: float = 0.0,
    ) -> "Bond":
        times = year_fractions(maturity, frequency)
        amounts = np.full(times.size, coupon / frequency)
        amounts[-1] += 1.0
        return cls(
            payment_times=tuple(times),
            payment_amounts=tuple(amounts),
            recovery_rate=recovery_rate,
            accrued_interest=accrued_interest,
        )
