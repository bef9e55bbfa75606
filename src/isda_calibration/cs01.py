"""Credit spread sensitivities (CS01) by bumping market quotes and recalibrating."""

from __future__ import annotations

import bisect
import logging
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from .calibration import IsdaCreditCurveCalibrator
from .curves import DiscountCurve, IsdaCompliantCurve
from .errors import CurveConfigurationError
from .instruments import CdsInstrument
from .quotes import CdsQuoteConvention
from .valuation import PriceType

logger = logging.getLogger(__name__)

ONE_BP = 1e-4
MIN_BUMP = 1e-10


class ShiftType(Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"

    def apply(self, value: float, amount: float) -> float:
        if self is ShiftType.ABSOLUTE:
            return value + amount
        return value * (1.0 + amount)


class SpreadSensitivityCalculator:
    """Finite-difference CS01 of a CDS against the quotes of its credit curve.

    Every bump rebuilds the curve with the calibrator's node strategy and
    reprices the target CDS at its own coupon. Par and quoted spreads are
    bumped directly; points-upfront quotes are converted to quoted spreads,
    bumped and converted back.
    """

    def __init__(self, calibrator: Optional[IsdaCreditCurveCalibrator] = None) -> None:
        self.calibrator = calibrator if calibrator is not None else IsdaCreditCurveCalibrator.standard()

    @property
    def pricer(self):
        return self.calibrator.pricer

    @property
    def converter(self):
        return self.calibrator.converter

    def bump_quote(
        self,
        cds: CdsInstrument,
        quote: float,
        convention: CdsQuoteConvention,
        discount_curve: DiscountCurve,
        amount: float,
        shift_type: ShiftType = ShiftType.ABSOLUTE,
    ) -> float:
        if convention in (CdsQuoteConvention.PAR_SPREAD, CdsQuoteConvention.QUOTED_SPREAD):
            return shift_type.apply(quote, amount)
        if convention is CdsQuoteConvention.POINTS_UPFRONT:
            spread = self.converter.puf_to_quoted_spread(cds, cds.coupon, discount_curve, quote)
            return self.converter.quoted_spread_to_puf(
                cds, cds.coupon, discount_curve, shift_type.apply(spread, amount)
            )
        raise CurveConfigurationError(f"Unknown quote convention: {convention!r}")

    def credit_curve(
        self,
        instruments: Sequence[CdsInstrument],
        quotes: Sequence[float],
        convention: CdsQuoteConvention,
        discount_curve: DiscountCurve,
    ) -> IsdaCompliantCurve:
        """Curve through ``instruments`` quoted in ``convention``; coupons come from the instruments."""
        coupons = [cds.coupon for cds in instruments]
        strategy = self.calibrator.strategy
        if convention is CdsQuoteConvention.PAR_SPREAD:
            return strategy(instruments, list(quotes), [0.0] * len(instruments), discount_curve)
        if convention is CdsQuoteConvention.QUOTED_SPREAD:
            upfront = self.converter.quoted_spreads_to_puf(instruments, coupons, discount_curve, quotes)
            return strategy(instruments, coupons, upfront, discount_curve)
        if convention is CdsQuoteConvention.POINTS_UPFRONT:
            return strategy(instruments, coupons, list(quotes), discount_curve)
        raise CurveConfigurationError(f"Unknown quote convention: {convention!r}")

    def parallel_cs01(
        self,
        cds: CdsInstrument,
        coupon: float,
        discount_curve: DiscountCurve,
        market_instruments: Sequence[CdsInstrument],
        quotes: Sequence[float],
        convention: CdsQuoteConvention,
        bump: float = ONE_BP,
        shift_type: ShiftType = ShiftType.ABSOLUTE,
    ) -> float:
        """Change in clean PV per unit bump when every market quote moves together."""
        _check_inputs(market_instruments, quotes, bump)
        base = self._price(cds, coupon, discount_curve, self.credit_curve(market_instruments, quotes, convention, discount_curve))
        bumped_quotes = [
            self.bump_quote(market_cds, quote, convention, discount_curve, bump, shift_type)
            for market_cds, quote in zip(market_instruments, quotes)
        ]
        bumped = self._price(
            cds, coupon, discount_curve, self.credit_curve(market_instruments, bumped_quotes, convention, discount_curve)
        )
        cs01 = (bumped - base) / bump
        logger.debug("Parallel CS01 over %d quotes: %.10g", len(quotes), cs01)
        return cs01

    def bucketed_cs01(
        self,
        cds: CdsInstrument,
        coupon: float,
        discount_curve: DiscountCurve,
        market_instruments: Sequence[CdsInstrument],
        quotes: Sequence[float],
        convention: CdsQuoteConvention,
        bump: float = ONE_BP,
        shift_type: ShiftType = ShiftType.ABSOLUTE,
    ) -> np.ndarray:
        """Change in clean PV per unit bump of each market quote in turn."""
        _check_inputs(market_instruments, quotes, bump)
        base = self._price(cds, coupon, discount_curve, self.credit_curve(market_instruments, quotes, convention, discount_curve))
        result = np.zeros(len(quotes))
        for index, (market_cds, quote) in enumerate(zip(market_instruments, quotes)):
            bumped_quotes = list(quotes)
            bumped_quotes[index] = self.bump_quote(market_cds, quote, convention, discount_curve, bump, shift_type)
            curve = self.credit_curve(market_instruments, bumped_quotes, convention, discount_curve)
            result[index] = (self._price(cds, coupon, discount_curve, curve) - base) / bump
        return result

    def bucketed_cs01_from_credit_curve(
        self,
        cds: CdsInstrument,
        coupon: float,
        bucket_instruments: Sequence[CdsInstrument],
        discount_curve: DiscountCurve,
        credit_curve: DiscountCurve,
        bump: float = ONE_BP,
    ) -> np.ndarray:
        """Bucketed CS01 against par spreads implied by ``credit_curve`` at the bucket maturities.

        Buckets beyond the first one covering the CDS maturity carry no
        sensitivity and are left at zero.
        """
        if not bucket_instruments:
            raise CurveConfigurationError("At least one bucket CDS is required")
        if abs(bump) <= MIN_BUMP:
            raise CurveConfigurationError(f"Bump amount {bump} is too small")
        times = [bucket.protection_end for bucket in bucket_instruments]
        if any(t2 <= t1 for t1, t2 in zip(times, times[1:])):
            raise CurveConfigurationError("Bucket maturities must be strictly ascending")
        implied = self.converter.par_spreads(bucket_instruments, discount_curve, credit_curve)
        last = min(bisect.bisect_left(times, cds.protection_end), len(times) - 1)

        base_curve = self.credit_curve(bucket_instruments, implied, CdsQuoteConvention.PAR_SPREAD, discount_curve)
        base = self._price(cds, coupon, discount_curve, base_curve)
        result = np.zeros(len(times))
        for index in range(last + 1):
            bumped: List[float] = list(implied)
            bumped[index] += bump
            curve = self.credit_curve(bucket_instruments, bumped, CdsQuoteConvention.PAR_SPREAD, discount_curve)
            result[index] = (self._price(cds, coupon, discount_curve, curve) - base) / bump
        return result

    def _price(self, cds: CdsInstrument, coupon: float, discount_curve: DiscountCurve, credit_curve: DiscountCurve) -> float:
        return self.pricer.pv(cds, discount_curve, credit_curve, coupon, PriceType.CLEAN)


def _check_inputs(market_instruments: Sequence[CdsInstrument], quotes: Sequence[float], bump: float) -> None:
    if not market_instruments:
        raise CurveConfigurationError("At least one market CDS is required")
    if len(market_instruments) != len(quotes):
        raise CurveConfigurationError(
            f"{len(quotes)} quotes given for {len(market_instruments)} market instruments"
        )
    if abs(bump) <= MIN_BUMP:
        raise CurveConfigurationError(f"Bump amount {bump} is too small")
