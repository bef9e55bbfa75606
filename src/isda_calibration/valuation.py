"""ISDA standard model premium/protection leg valuation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

import numpy as np

from .curves import DiscountCurve, IsdaCompliantCurve
from .instruments import CdsCoupon, CdsInstrument
from .mathutils import epsilon, epsilon_p

SMALL_DHRT = 1e-5
FD_BUMP = 1e-6


class AccrualOnDefaultFormula(Enum):
    """Variants of the accrual-on-default integral."""

    ORIGINAL_ISDA = "original_isda"
    MARKIT_FIX = "markit_fix"
    CORRECT = "correct"

    @property
    def omega(self) -> float:
        # half-day offset of the original ISDA code
        return 1.0 / 730.0 if self is AccrualOnDefaultFormula.ORIGINAL_ISDA else 0.0


class PriceType(Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


@dataclass(slots=True)
class PremiumLegBreakdown:
    """Premium leg decomposition showing coupon vs accrual PV."""

    coupon_pv: float
    accrual_on_default_pv: float

    @property
    def total(self) -> float:
        return self.coupon_pv + self.accrual_on_default_pv


def integration_points(start: float, end: float, yield_curve: DiscountCurve, credit_curve: DiscountCurve) -> List[float]:
    """``start``, ``end`` and every knot of either curve strictly between them."""
    knots = set(yield_curve.knot_times) | set(credit_curve.knot_times)
    inner = sorted(k for k in knots if start < k < end)
    return [start, *inner, end]


class AnalyticCdsPricer:
    """Stateless analytic CDS pricer for a given accrual-on-default formula."""

    def __init__(self, formula: AccrualOnDefaultFormula = AccrualOnDefaultFormula.ORIGINAL_ISDA) -> None:
        self.formula = formula

    def __repr__(self) -> str:
        return f"AnalyticCdsPricer({self.formula.name})"

    # ------------------------------------------------------------------
    def protection_leg(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: DiscountCurve,
        valuation_time: float | None = None,
    ) -> float:
        """Protection leg PV per unit notional, rolled to ``valuation_time``.

        The integral of ``P(t) dQ(t)`` is evaluated exactly on each interval
        where both the forward rate and the hazard rate are constant.
        """
        if cds.protection_end <= 0.0:
            return 0.0
        if valuation_time is None:
            valuation_time = cds.cash_settle_time

        points = integration_points(cds.effective_protection_start, cds.protection_end, yield_curve, credit_curve)
        ht0 = credit_curve.rt(points[0])
        rt0 = yield_curve.rt(points[0])
        b0 = math.exp(-ht0 - rt0)
        pv = 0.0
        for t in points[1:]:
            ht1 = credit_curve.rt(t)
            rt1 = yield_curve.rt(t)
            b1 = math.exp(-ht1 - rt1)
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            if abs(dhrt) < SMALL_DHRT:
                pv += dht * b0 * epsilon(-dhrt)
            else:
                pv += (b0 - b1) * dht / dhrt
            ht0, rt0, b0 = ht1, rt1, b1
        return cds.lgd * pv / yield_curve.df(valuation_time)

    def premium_leg_breakdown(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: DiscountCurve,
    ) -> PremiumLegBreakdown:
        """Dirty annuity at ``t = 0`` split into coupons and accrual on default."""
        if cds.protection_end <= 0.0:
            return PremiumLegBreakdown(coupon_pv=0.0, accrual_on_default_pv=0.0)
        coupon_pv = 0.0
        for coupon in cds.coupons:
            coupon_pv += coupon.year_frac * yield_curve.df(coupon.payment_time) * credit_curve.df(coupon.eff_end)
        accrual_pv = 0.0
        if cds.pay_accrued_on_default:
            points = integration_points(cds.effective_protection_start, cds.protection_end, yield_curve, credit_curve)
            for coupon in cds.coupons:
                accrual_pv += self._accrual_on_default(
                    coupon, cds.effective_protection_start, points, yield_curve, credit_curve
                )
        return PremiumLegBreakdown(coupon_pv=coupon_pv, accrual_on_default_pv=accrual_pv)

    def _accrual_on_default(
        self,
        coupon: CdsCoupon,
        protection_start: float,
        points: Sequence[float],
        yield_curve: DiscountCurve,
        credit_curve: DiscountCurve,
    ) -> float:
        start = max(coupon.eff_start, protection_start)
        if start >= coupon.eff_end:
            return 0.0
        knots = [start, *(p for p in points if start < p < coupon.eff_end), coupon.eff_end]
        omega = self.formula.omega
        markit_fix = self.formula is AccrualOnDefaultFormula.MARKIT_FIX

        ht0 = credit_curve.rt(start)
        rt0 = yield_curve.rt(start)
        b0 = math.exp(-rt0 - ht0)
        t0 = start - coupon.eff_start + omega
        pv = 0.0
        for previous, t in zip(knots, knots[1:]):
            ht1 = credit_curve.rt(t)
            rt1 = yield_curve.rt(t)
            b1 = math.exp(-rt1 - ht1)
            dt = t - previous
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            if markit_fix:
                if abs(dhrt) < SMALL_DHRT:
                    pv += dht * dt * b0 * epsilon_p(-dhrt)
                else:
                    pv += dht * dt / dhrt * ((b0 - b1) / dhrt - b1)
            else:
                t1 = t - coupon.eff_start + omega
                if abs(dhrt) < SMALL_DHRT:
                    pv += dht * b0 * (t0 * epsilon(-dhrt) + dt * epsilon_p(-dhrt))
                else:
                    pv += dht / dhrt * (t0 * b0 - t1 * b1 + dt / dhrt * (b0 - b1))
                t0 = t1
            ht0, rt0, b0 = ht1, rt1, b1
        return coupon.yf_ratio * pv

    def annuity(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: DiscountCurve,
        price_type: PriceType = PriceType.CLEAN,
        valuation_time: float | None = None,
    ) -> float:
        """Risky annuity (premium leg per unit coupon), rolled to ``valuation_time``."""
        if valuation_time is None:
            valuation_time = cds.cash_settle_time
        dirty = self.premium_leg_breakdown(cds, yield_curve, credit_curve).total / yield_curve.df(valuation_time)
        if price_type is PriceType.CLEAN:
            return dirty - cds.accrued_year_fraction
        return dirty

    def pv(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: DiscountCurve,
        coupon: float | None = None,
        price_type: PriceType = PriceType.CLEAN,
    ) -> float:
        """Protection buyer PV per unit notional; the clean PV is the points-upfront."""
        if coupon is None:
            coupon = cds.coupon
        if cds.protection_end <= 0.0:
            return 0.0
        annuity = self.annuity(cds, yield_curve, credit_curve, price_type)
        protection = self.protection_leg(cds, yield_curve, credit_curve)
        return protection - coupon * annuity

    def points_upfront(self, cds: CdsInstrument, coupon: float, yield_curve: DiscountCurve, credit_curve: DiscountCurve) -> float:
        return self.pv(cds, yield_curve, credit_curve, coupon, PriceType.CLEAN)

    def par_spread(self, cds: CdsInstrument, yield_curve: DiscountCurve, credit_curve: DiscountCurve) -> float:
        if cds.protection_end <= 0.0:
            raise ValueError("CDS has already expired")
        annuity = self.annuity(cds, yield_curve, credit_curve, PriceType.CLEAN)
        if annuity == 0.0:
            raise ValueError("Premium leg annuity is zero; invalid instrument")
        return self.protection_leg(cds, yield_curve, credit_curve) / annuity

    # ------------------------------------------------------------------
    def pv_sensitivity(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
        coupon: float,
        node_index: int,
        price_type: PriceType = PriceType.CLEAN,
    ) -> float:
        """Central finite difference of the PV to one credit-curve zero rate."""
        rate = credit_curve.parameter(node_index)
        up = credit_curve.with_parameter(node_index, rate + FD_BUMP)
        down = credit_curve.with_parameter(node_index, rate - FD_BUMP)
        return (
            self.pv(cds, yield_curve, up, coupon, price_type) - self.pv(cds, yield_curve, down, coupon, price_type)
        ) / (2.0 * FD_BUMP)

    def par_spread_sensitivity(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
        node_index: int,
    ) -> float:
        rate = credit_curve.parameter(node_index)
        up = credit_curve.with_parameter(node_index, rate + FD_BUMP)
        down = credit_curve.with_parameter(node_index, rate - FD_BUMP)
        return (self.par_spread(cds, yield_curve, up) - self.par_spread(cds, yield_curve, down)) / (2.0 * FD_BUMP)

    def pv_sensitivities(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
        coupon: float,
        price_type: PriceType = PriceType.CLEAN,
    ) -> np.ndarray:
        return np.array(
            [
                self.pv_sensitivity(cds, yield_curve, credit_curve, coupon, j, price_type)
                for j in range(credit_curve.parameter_count)
            ],
            dtype=float,
        )

    def par_spread_sensitivities(
        self,
        cds: CdsInstrument,
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
    ) -> np.ndarray:
        return np.array(
            [self.par_spread_sensitivity(cds, yield_curve, credit_curve, j) for j in range(credit_curve.parameter_count)],
            dtype=float,
        )
