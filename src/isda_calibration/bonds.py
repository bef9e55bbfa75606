"""Implied hazard rates from bond prices and the equivalent CDS spread."""

from __future__ import annotations

import logging
import math
from typing import Optional

from .curves import DiscountCurve, IsdaCompliantCurve
from .errors import MarketDataRangeError
from .instruments import Bond, CdsInstrument
from .mathutils import epsilon
from .rootfinding import bracketed_brent
from .valuation import SMALL_DHRT, AnalyticCdsPricer, PriceType

logger = logging.getLogger(__name__)


class BondHazardRateSolver:
    """Solves for the flat hazard rate that reprices a bond.

    The risky bond price is the survival-weighted value of the cash flows
    plus the recovery paid at default, ``R ∫ P(t) λ exp(-λt) dt``.
    """

    def __init__(self, pricer: Optional[AnalyticCdsPricer] = None) -> None:
        self.pricer = pricer if pricer is not None else AnalyticCdsPricer()

    def price(self, bond: Bond, yield_curve: DiscountCurve, hazard_rate: float, price_type: PriceType = PriceType.DIRTY) -> float:
        cash_flows = sum(
            amount * yield_curve.df(t) * math.exp(-hazard_rate * t)
            for t, amount in zip(bond.payment_times, bond.payment_amounts)
        )
        dirty = cash_flows + bond.recovery_rate * self._default_leg(bond, yield_curve, hazard_rate)
        if price_type is PriceType.CLEAN:
            return dirty - bond.accrued_interest
        return dirty

    def _default_leg(self, bond: Bond, yield_curve: DiscountCurve, hazard_rate: float) -> float:
        if hazard_rate == 0.0:
            return 0.0
        end = bond.maturity
        points = [0.0, *sorted(k for k in yield_curve.knot_times if 0.0 < k < end), end]
        rt0 = yield_curve.rt(0.0)
        ht0 = 0.0
        b0 = math.exp(-rt0)
        pv = 0.0
        for t in points[1:]:
            rt1 = yield_curve.rt(t)
            ht1 = hazard_rate * t
            b1 = math.exp(-rt1 - ht1)
            dht = ht1 - ht0
            dhrt = dht + rt1 - rt0
            if abs(dhrt) < SMALL_DHRT:
                pv += dht * b0 * epsilon(-dhrt)
            else:
                pv += (b0 - b1) * dht / dhrt
            rt0, ht0, b0 = rt1, ht1, b1
        return pv

    def hazard_rate(
        self,
        bond: Bond,
        yield_curve: DiscountCurve,
        price: float,
        price_type: PriceType = PriceType.CLEAN,
    ) -> float:
        """Flat hazard rate implied by ``price``."""
        dirty = price + bond.accrued_interest if price_type is PriceType.CLEAN else price
        if dirty <= 0.0:
            raise MarketDataRangeError(f"Bond price must be positive, was {dirty}")
        risk_free = self.price(bond, yield_curve, 0.0)
        if dirty >= risk_free:
            raise MarketDataRangeError(
                f"Bond dirty price {dirty} is not below the risk-free price {risk_free}"
            )
        if dirty <= bond.recovery_rate:
            raise MarketDataRangeError(
                f"Bond dirty price {dirty} is not above the recovery rate {bond.recovery_rate}"
            )

        def objective(hazard: float) -> float:
            return self.price(bond, yield_curve, hazard) - dirty

        guess = -math.log(dirty / risk_free) / bond.maturity
        result = bracketed_brent(objective, guess)
        logger.debug("Bond price %.8f implies hazard rate %.10f", dirty, result.root)
        return result.root

    def equivalent_cds_spread(
        self,
        bond: Bond,
        yield_curve: DiscountCurve,
        price: float,
        cds: CdsInstrument,
        price_type: PriceType = PriceType.CLEAN,
    ) -> float:
        """Par spread of ``cds`` on the flat hazard curve implied by the bond."""
        hazard = self.hazard_rate(bond, yield_curve, price, price_type)
        credit_curve = IsdaCompliantCurve.flat(hazard)
        return self.pricer.par_spread(cds.with_recovery_rate(bond.recovery_rate), yield_curve, credit_curve)
