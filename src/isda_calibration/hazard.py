"""Piece-wise constant hazard rate credit curve construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from .curves import DiscountCurve, IsdaCompliantCurve
from .errors import ArbitrageError, CurveConfigurationError
from .instruments import CdsInstrument
from .metadata import CurveMetadata
from .rootfinding import bracketed_brent
from .valuation import AccrualOnDefaultFormula, AnalyticCdsPricer, PriceType

logger = logging.getLogger(__name__)


class ArbitrageHandling(Enum):
    """What to do when a node implies a negative forward hazard rate."""

    IGNORE = "ignore"
    FAIL = "fail"
    ZERO_HAZARD_RATE = "zero_hazard_rate"

    def apply(self, forward_hazard: float, node_index: int) -> float:
        """Return the forward hazard rate to use for the node, or raise."""
        if forward_hazard >= 0.0 or self is ArbitrageHandling.IGNORE:
            return forward_hazard
        if self is ArbitrageHandling.FAIL:
            raise ArbitrageError(node_index, forward_hazard)
        logger.warning(
            "Negative forward hazard %.6g at node %s set to zero; node will not reprice", forward_hazard, node_index
        )
        return 0.0


@dataclass(slots=True)
class HazardSegment:
    start: float
    end: float
    hazard_rate: float


def hazard_segments(curve: IsdaCompliantCurve) -> List[HazardSegment]:
    """Forward hazard rate on each interval between credit curve knots."""
    segments: List[HazardSegment] = []
    last = 0.0
    for end, hazard in zip(curve.knot_times, curve.forward_rates()):
        segments.append(HazardSegment(start=last, end=end, hazard_rate=float(hazard)))
        last = end
    return segments


class CreditCurveStrategy(Protocol):
    """Node-solve primitive building a credit curve from standardised quotes."""

    def __call__(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Sequence[float],
        points_upfront: Sequence[float],
        discount_curve: DiscountCurve,
        metadata: Optional[CurveMetadata] = None,
    ) -> IsdaCompliantCurve:
        ...


class FastCreditCurveBuilder:
    """Bootstraps knot hazard rates so each CDS reprices to its points-upfront.

    Knots sit at the protection end of each instrument. Node ``i`` only
    depends on nodes before it, so nodes are solved strictly left to right.
    """

    def __init__(
        self,
        arbitrage_handling: ArbitrageHandling = ArbitrageHandling.IGNORE,
        formula: AccrualOnDefaultFormula = AccrualOnDefaultFormula.ORIGINAL_ISDA,
    ) -> None:
        self.arbitrage_handling = arbitrage_handling
        self.pricer = AnalyticCdsPricer(formula)

    def __repr__(self) -> str:
        return f"FastCreditCurveBuilder({self.arbitrage_handling.name}, {self.pricer.formula.name})"

    def __call__(
        self,
        instruments: Sequence[CdsInstrument],
        coupons: Sequence[float],
        points_upfront: Sequence[float],
        discount_curve: DiscountCurve,
        metadata: Optional[CurveMetadata] = None,
    ) -> IsdaCompliantCurve:
        n = len(instruments)
        if n == 0:
            raise CurveConfigurationError("At least one CDS is required")
        if len(coupons) != n or len(points_upfront) != n:
            raise CurveConfigurationError("instruments, coupons and points upfront lengths differ")
        times = [cds.protection_end for cds in instruments]
        if times[0] <= 0.0:
            raise CurveConfigurationError("First CDS has already expired")
        if any(t2 <= t1 for t1, t2 in zip(times, times[1:])):
            raise CurveConfigurationError("CDS maturities must be strictly ascending")
        if any(cds.lgd <= 0.0 for cds in instruments):
            raise CurveConfigurationError("Loss given default must be positive; a recovery rate of one cannot be calibrated")

        guesses = [
            (coupon + puf / cds.protection_end) / cds.lgd
            for cds, coupon, puf in zip(instruments, coupons, points_upfront)
        ]
        curve = IsdaCompliantCurve.of(times, guesses, metadata)
        for index, (cds, coupon, puf) in enumerate(zip(instruments, coupons, points_upfront)):
            curve = self._solve_node(curve, index, cds, coupon, puf, discount_curve, guesses[index])
        return curve

    def _solve_node(
        self,
        curve: IsdaCompliantCurve,
        index: int,
        cds: CdsInstrument,
        coupon: float,
        points_upfront: float,
        discount_curve: DiscountCurve,
        guess: float,
    ) -> IsdaCompliantCurve:
        def objective(rate: float) -> float:
            trial = curve.with_parameter(index, rate)
            return self.pricer.pv(cds, discount_curve, trial, coupon, PriceType.CLEAN) - points_upfront

        result = bracketed_brent(objective, guess)
        t_i = curve.time_at(index)
        t_prev = curve.time_at(index - 1) if index > 0 else 0.0
        rt_prev = curve.rt_at(index - 1) if index > 0 else 0.0
        forward = (result.root * t_i - rt_prev) / (t_i - t_prev)
        accepted = self.arbitrage_handling.apply(forward, index)
        rate = result.root if accepted == forward else (rt_prev + accepted * (t_i - t_prev)) / t_i
        logger.debug(
            "Node %s: t=%.6f hazard=%.10f forward=%.10f (%s brent iterations)",
            index,
            t_i,
            rate,
            accepted,
            result.iterations,
        )
        return curve.with_parameter(index, rate)
