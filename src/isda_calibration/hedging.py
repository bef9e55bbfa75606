"""Hedge ratios of a CDS against a set of hedge CDSs on the same credit curve."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from scipy.linalg import lu_factor, lu_solve

from .curves import DiscountCurve, IsdaCompliantCurve
from .errors import CurveConfigurationError
from .instruments import CdsInstrument
from .valuation import AnalyticCdsPricer

logger = logging.getLogger(__name__)


def solve_hedge_ratios(target_sensitivities: Sequence[float], hedge_sensitivities) -> np.ndarray:
    """Solve ``A x = b`` for hedge ratios.

    ``hedge_sensitivities`` is the (knots x hedges) matrix ``A`` and
    ``target_sensitivities`` the knot sensitivities ``b`` of the target.
    A square system is solved exactly; with fewer hedges than knots the
    normal equations ``A^T A x = A^T b`` give a least-squares hedge.
    """
    b = np.asarray(target_sensitivities, dtype=float).ravel()
    a = np.atleast_2d(np.asarray(hedge_sensitivities, dtype=float))
    n_knots, n_hedges = a.shape
    if n_knots != b.size:
        raise CurveConfigurationError(
            f"Target has {b.size} sensitivities but hedge matrix has {n_knots} rows"
        )
    if n_hedges > n_knots:
        raise CurveConfigurationError(
            f"{n_hedges} hedge instruments for {n_knots} curve knots: no unique hedge exists"
        )
    if n_hedges == n_knots:
        return lu_solve(lu_factor(a), b)
    logger.debug("Least-squares hedge with %s instruments over %s knots", n_hedges, n_knots)
    return lu_solve(lu_factor(a.T @ a), a.T @ b)


def hedge_notionals(ratios: Sequence[float], notional: float) -> np.ndarray:
    """Notionals of the hedge trades for a target position of ``notional``."""
    return -notional * np.asarray(ratios, dtype=float)


class HedgeRatioCalculator:
    def __init__(self, pricer: Optional[AnalyticCdsPricer] = None) -> None:
        self.pricer = pricer if pricer is not None else AnalyticCdsPricer()

    def cds_sensitivities(
        self,
        cds: CdsInstrument,
        coupon: float,
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
    ) -> np.ndarray:
        """PV sensitivity of ``cds`` to each credit curve knot."""
        return self.pricer.pv_sensitivities(cds, yield_curve, credit_curve, coupon)

    def hedge_sensitivity_matrix(
        self,
        hedges: Sequence[CdsInstrument],
        coupons: Sequence[float],
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
    ) -> np.ndarray:
        """Knots x hedges matrix of PV sensitivities."""
        if len(hedges) != len(coupons):
            raise CurveConfigurationError("hedges and coupons lengths differ")
        columns = [
            self.cds_sensitivities(cds, coupon, yield_curve, credit_curve) for cds, coupon in zip(hedges, coupons)
        ]
        return np.column_stack(columns)

    def hedge_ratios(
        self,
        target: CdsInstrument,
        target_coupon: float,
        hedges: Sequence[CdsInstrument],
        hedge_coupons: Sequence[float],
        yield_curve: DiscountCurve,
        credit_curve: IsdaCompliantCurve,
    ) -> np.ndarray:
        b = self.cds_sensitivities(target, target_coupon, yield_curve, credit_curve)
        a = self.hedge_sensitivity_matrix(hedges, hedge_coupons, yield_curve, credit_curve)
        return solve_hedge_ratios(b, a)
