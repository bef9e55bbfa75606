"""Conversion between CDS quote conventions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, NamedTuple, Sequence, Union

from .curves import DiscountCurve, IsdaCompliantCurve
from .errors import CurveConfigurationError
from .hazard import CreditCurveStrategy, FastCreditCurveBuilder
from .instruments import CdsInstrument
from .metadata import CurveMetadata
from .valuation import AnalyticCdsPricer, PriceType

logger = logging.getLogger(__name__)

QUOTE_CONVERT_CURVE = "quoteConvertCurve"

Coupons = Union[float, Sequence[float]]


class CdsQuoteConvention(Enum):
    PAR_SPREAD = "par_spread"
    QUOTED_SPREAD = "quoted_spread"
    POINTS_UPFRONT = "points_upfront"


class QuoteTriple(NamedTuple):
    """Standardised quote of one CDS node."""

    coupon: float
    points_upfront: float
    jacobian_scale: float


class MarketQuoteConverter:
    """Maps CDS market quotes onto (coupon, points-upfront) pairs.

    Quoted spreads are converted by calibrating a one-node curve with
    ``builder`` and repricing the CDS at its own fixed coupon.
    """

    def __init__(self, builder: CreditCurveStrategy | None = None, pricer: AnalyticCdsPricer | None = None) -> None:
        self.builder = builder if builder is not None else FastCreditCurveBuilder()
        self.pricer = pricer if pricer is not None else AnalyticCdsPricer()

    def standardise(
        self,
        cds: CdsInstrument,
        quote: float,
        convention: CdsQuoteConvention,
        discount_curve: DiscountCurve,
    ) -> QuoteTriple:
        if convention is CdsQuoteConvention.PAR_SPREAD:
            return QuoteTriple(coupon=quote, points_upfront=0.0, jacobian_scale=1.0)
        if convention is CdsQuoteConvention.POINTS_UPFRONT:
            return QuoteTriple(coupon=cds.coupon, points_upfront=quote, jacobian_scale=1.0)
        if convention is CdsQuoteConvention.QUOTED_SPREAD:
            curve = self.flat_curve(cds, quote, 0.0, discount_curve)
            puf = self.pricer.points_upfront(cds, cds.coupon, discount_curve, curve)
            spread_sensitivity = self.pricer.par_spread_sensitivity(cds, discount_curve, curve, 0)
            puf_sensitivity = self.pricer.pv_sensitivity(cds, discount_curve, curve, cds.coupon, 0)
            logger.debug("Quoted spread %.8f converted to points upfront %.8f", quote, puf)
            return QuoteTriple(coupon=cds.coupon, points_upfront=puf, jacobian_scale=spread_sensitivity / puf_sensitivity)
        raise CurveConfigurationError(f"Unknown quote convention: {convention!r}")

    def flat_curve(
        self,
        cds: CdsInstrument,
        coupon: float,
        points_upfront: float,
        discount_curve: DiscountCurve,
    ) -> IsdaCompliantCurve:
        """One-node credit curve repricing ``cds`` at (coupon, points upfront)."""
        return self.builder([cds], [coupon], [points_upfront], discount_curve, CurveMetadata(QUOTE_CONVERT_CURVE))

    # ------------------------------------------------------------------
    def clean_price(self, fractional_puf: float) -> float:
        return 1.0 - fractional_puf

    def quoted_spread_to_puf(
        self, cds: CdsInstrument, coupon: float, discount_curve: DiscountCurve, quoted_spread: float
    ) -> float:
        curve = self.flat_curve(cds, quoted_spread, 0.0, discount_curve)
        return self.pricer.points_upfront(cds, coupon, discount_curve, curve)

    def puf_to_quoted_spread(
        self, cds: CdsInstrument, coupon: float, discount_curve: DiscountCurve, points_upfront: float
    ) -> float:
        curve = self.flat_curve(cds, coupon, points_upfront, discount_curve)
        return self.pricer.par_spread(cds, discount_curve, curve)

    def par_spreads(
        self, instruments: Sequence[CdsInstrument], discount_curve: DiscountCurve, credit_curve: DiscountCurve
    ) -> List[float]:
        return [self.pricer.par_spread(cds, discount_curve, credit_curve) for cds in instruments]

    def points_upfront(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        credit_curve: DiscountCurve,
    ) -> List[float]:
        coupons = _per_instrument(coupons, len(instruments), "coupons")
        return [
            self.pricer.points_upfront(cds, coupon, discount_curve, credit_curve)
            for cds, coupon in zip(instruments, coupons)
        ]

    def principal(
        self,
        notional: float,
        cds: CdsInstrument,
        coupon: float,
        discount_curve: DiscountCurve,
        credit_curve: DiscountCurve,
    ) -> float:
        """Clean present value of ``notional`` of protection paying ``coupon``."""
        return notional * self.pricer.pv(cds, discount_curve, credit_curve, coupon, PriceType.CLEAN)

    # Quoted spreads price each CDS off its own flat curve.
    def quoted_spreads_to_puf(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        quoted_spreads: Sequence[float],
    ) -> List[float]:
        n = len(instruments)
        coupons = _per_instrument(coupons, n, "coupons")
        quoted_spreads = _per_instrument(quoted_spreads, n, "quoted spreads")
        return [
            self.quoted_spread_to_puf(cds, coupon, discount_curve, spread)
            for cds, coupon, spread in zip(instruments, coupons, quoted_spreads)
        ]

    def puf_to_quoted_spreads(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        points_upfront: Sequence[float],
    ) -> List[float]:
        n = len(instruments)
        coupons = _per_instrument(coupons, n, "coupons")
        points_upfront = _per_instrument(points_upfront, n, "points upfront")
        return [
            self.puf_to_quoted_spread(cds, coupon, discount_curve, puf)
            for cds, coupon, puf in zip(instruments, coupons, points_upfront)
        ]

    # Par spreads share one curve bootstrapped through every CDS.
    def par_spreads_to_puf(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        par_spreads: Sequence[float],
    ) -> List[float]:
        par_spreads = _per_instrument(par_spreads, len(instruments), "par spreads")
        curve = self.builder(
            instruments, par_spreads, [0.0] * len(instruments), discount_curve, CurveMetadata(QUOTE_CONVERT_CURVE)
        )
        return self.points_upfront(instruments, coupons, discount_curve, curve)

    def puf_to_par_spreads(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        points_upfront: Sequence[float],
    ) -> List[float]:
        n = len(instruments)
        coupons = _per_instrument(coupons, n, "coupons")
        points_upfront = _per_instrument(points_upfront, n, "points upfront")
        curve = self.builder(instruments, coupons, points_upfront, discount_curve, CurveMetadata(QUOTE_CONVERT_CURVE))
        return self.par_spreads(instruments, discount_curve, curve)

    def par_spreads_to_quoted_spreads(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        par_spreads: Sequence[float],
    ) -> List[float]:
        puf = self.par_spreads_to_puf(instruments, coupons, discount_curve, par_spreads)
        return self.puf_to_quoted_spreads(instruments, coupons, discount_curve, puf)

    def quoted_spreads_to_par_spreads(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Coupons,
        discount_curve: DiscountCurve,
        quoted_spreads: Sequence[float],
    ) -> List[float]:
        puf = self.quoted_spreads_to_puf(instruments, coupons, discount_curve, quoted_spreads)
        return self.puf_to_par_spreads(instruments, coupons, discount_curve, puf)


def _per_instrument(values: Coupons, n: int, name: str) -> List[float]:
    if isinstance(values, (int, float)):
        return [float(values)] * n
    values = [float(v) for v in values]
    if len(values) != n:
        raise CurveConfigurationError(f"Expected {n} {name}, got {len(values)}")
    return values
