"""Discount curve bootstrapping from term deposits and par swaps."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .curves import IsdaCompliantCurve
from .daycount import ACT_365F, DayCount
from .errors import CurveConfigurationError
from .instruments import FixedFloatSwap, TermDeposit
from .market import IsdaDiscountFactors, MarketData
from .metadata import CurveMetadata, CurveParameterSize, JacobianCalibrationMatrix, ParameterMetadata
from .rootfinding import NEWTON_MAX_ITER, newton_raphson

logger = logging.getLogger(__name__)

RateInstrument = Union[TermDeposit, FixedFloatSwap]

JACOBIAN_BUMP = 1e-6


@dataclass(frozen=True, slots=True)
class IsdaDiscountCurveNode:
    """A deposit or swap node; the instrument rate is filled from market data."""

    label: str
    observable_id: str
    instrument: RateInstrument
    currency: str
    spot_days: int = 2

    @property
    def time(self) -> float:
        return self.instrument.maturity


@dataclass(frozen=True, slots=True)
class IsdaDiscountCurveDefinition:
    name: str
    currency: str
    valuation_date: date
    nodes: Tuple[IsdaDiscountCurveNode, ...]
    day_count: DayCount = ACT_365F
    spot_date: Optional[date] = None
    compute_jacobian: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))

    def resolved_spot_date(self) -> date:
        if self.spot_date is not None:
            return self.spot_date
        return self.valuation_date + timedelta(days=self.nodes[0].spot_days)


def bootstrap_zero_curve(
    instruments: Sequence[RateInstrument],
    *,
    metadata: Optional[CurveMetadata] = None,
    tolerance: float = 1e-12,
    max_iter: int = NEWTON_MAX_ITER,
) -> IsdaCompliantCurve:
    """Solve knot zero rates left to right so every instrument reprices at par.

    Knots sit at the instrument maturities, measured from the spot date.
    """
    if not instruments:
        raise CurveConfigurationError("At least one instrument is required")
    times = [instrument.maturity for instrument in instruments]
    if times[0] <= 0.0:
        raise CurveConfigurationError(f"First node time must be positive, was {times[0]}")
    if any(t2 <= t1 for t1, t2 in zip(times, times[1:])):
        raise CurveConfigurationError("Node times must be strictly ascending")

    guesses = [
        instrument.zero_rate() if isinstance(instrument, TermDeposit) else instrument.rate
        for instrument in instruments
    ]
    curve = IsdaCompliantCurve.of(times, guesses, metadata)
    for index, instrument in enumerate(instruments):
        if isinstance(instrument, TermDeposit):
            logger.debug("Node %s: deposit t=%.6f zero rate=%.10f", index, times[index], guesses[index])
            continue
        curve = _solve_swap_node(curve, index, instrument, tolerance, max_iter)
        logger.debug("Node %s: swap t=%.6f zero rate=%.10f", index, times[index], curve.parameter(index))
    return curve


def _solve_swap_node(
    curve: IsdaCompliantCurve,
    index: int,
    swap: FixedFloatSwap,
    tolerance: float,
    max_iter: int,
) -> IsdaCompliantCurve:
    t_i = curve.time_at(index)
    t_prev = curve.time_at(index - 1) if index > 0 else 0.0
    rt_prev = curve.rt_at(index - 1) if index > 0 else 0.0

    # cash flows up to the previous knot do not move with this node
    fixed_pv = 0.0
    window: List[Tuple[float, float]] = []
    for t, yf in zip(swap.payment_times, swap.year_fractions):
        amount = swap.rate * yf
        if index > 0 and t <= t_prev:
            fixed_pv += amount * curve.df(t)
        else:
            window.append((t, amount))
    window.append((t_i, 1.0))

    if index == 0:
        def rt_and_sense(t: float, r: float) -> Tuple[float, float]:
            return r * t, t
    else:
        dt = t_i - t_prev

        def rt_and_sense(t: float, r: float) -> Tuple[float, float]:
            w2 = (t - t_prev) / dt
            return (1.0 - w2) * rt_prev + w2 * r * t_i, w2 * t_i

    def func_and_deriv(r: float) -> Tuple[float, float]:
        value = fixed_pv - 1.0
        deriv = 0.0
        for t, amount in window:
            rt, sense = rt_and_sense(t, r)
            pv = amount * math.exp(-rt)
            value += pv
            deriv -= pv * sense
        return value, deriv

    guess = curve.parameter(index - 1) if index > 0 else swap.rate
    if func_and_deriv(guess)[0] == 0.0:
        return curve.with_parameter(index, guess)
    result = newton_raphson(func_and_deriv, guess, tol_value=tolerance, max_iter=max_iter)
    return curve.with_parameter(index, result.root)


class _SpotAnchoredCurve:
    """Discount factors from ``spot_time`` onwards, normalised to one at spot."""

    def __init__(self, curve: IsdaCompliantCurve, spot_time: float) -> None:
        self._curve = curve
        self._spot_time = spot_time
        self._spot_df = curve.df(spot_time)

    def df(self, t: float) -> float:
        return self._curve.df(self._spot_time + t) / self._spot_df


def node_par_rate(instrument: RateInstrument, curve: IsdaCompliantCurve, spot_time: float = 0.0) -> float:
    """Par rate of a node instrument on ``curve``, with its times measured from ``spot_time``."""
    return instrument.par_rate(_SpotAnchoredCurve(curve, spot_time))


class IsdaDiscountCurveCalibrator:
    """Calibrates ISDA discount curves from deposit and swap quotes."""

    def __init__(self, tolerance: float = 1e-12, max_iter: int = NEWTON_MAX_ITER) -> None:
        self.tolerance = tolerance
        self.max_iter = max_iter

    @classmethod
    def standard(cls) -> "IsdaDiscountCurveCalibrator":
        return cls()

    def calibrate(self, definition: IsdaDiscountCurveDefinition, market_data: MarketData) -> IsdaDiscountFactors:
        self._validate(definition)
        instruments = [
            node.instrument.with_rate(market_data.value(node.observable_id)) for node in definition.nodes
        ]
        parameter_metadata = [ParameterMetadata(node.label, node.time) for node in definition.nodes]
        metadata = CurveMetadata(
            curve_name=definition.name,
            day_count=definition.day_count.name,
            parameter_metadata=tuple(parameter_metadata),
        )
        curve = bootstrap_zero_curve(
            instruments, metadata=metadata, tolerance=self.tolerance, max_iter=self.max_iter
        )

        spot_date = definition.resolved_spot_date()
        offset = definition.day_count.relative_year_fraction(spot_date, definition.valuation_date)
        if offset != 0.0:
            logger.debug("Shifting curve %s by %.6f years to the valuation date", definition.name, offset)
            curve = curve.with_offset(offset)
            kept = parameter_metadata[len(parameter_metadata) - curve.parameter_count:]
            curve = curve.with_metadata(
                metadata.with_parameter_metadata(
                    [ParameterMetadata(meta.label, t) for meta, t in zip(kept, curve.knot_times)]
                )
            )

        if definition.compute_jacobian:
            jacobian = self._jacobian(definition.name, instruments, curve, -offset)
            curve = curve.with_metadata(curve.metadata.with_jacobian(jacobian))

        logger.info("Calibrated discount curve %s with %d nodes", definition.name, curve.parameter_count)
        return IsdaDiscountFactors(
            currency=definition.currency,
            valuation_date=definition.valuation_date,
            curve=curve,
            day_count=definition.day_count,
        )

    def _validate(self, definition: IsdaDiscountCurveDefinition) -> None:
        if not definition.nodes:
            raise CurveConfigurationError("Curve definition has no nodes")
        spot_days = {node.spot_days for node in definition.nodes}
        if len(spot_days) != 1:
            raise CurveConfigurationError(f"Nodes must share one spot date offset, found {sorted(spot_days)}")
        currencies = {node.currency for node in definition.nodes}
        if currencies != {definition.currency}:
            raise CurveConfigurationError(
                f"Node currencies {sorted(currencies)} do not match curve currency {definition.currency}"
            )
        times = [node.time for node in definition.nodes]
        if times[0] < 0.0:
            raise CurveConfigurationError("First node time must be >= 0")
        if any(t2 <= t1 for t1, t2 in zip(times, times[1:])):
            raise CurveConfigurationError("Node times must be strictly ascending")

    def _jacobian(
        self,
        name: str,
        instruments: Sequence[RateInstrument],
        curve: IsdaCompliantCurve,
        spot_time: float,
    ) -> JacobianCalibrationMatrix:
        n = len(instruments)
        if curve.parameter_count != n:
            raise CurveConfigurationError(
                f"Cannot build a Jacobian: {n} nodes but {curve.parameter_count} curve parameters after the spot shift"
            )
        sensitivity = np.zeros((n, n))
        for j in range(n):
            rate = curve.parameter(j)
            up = curve.with_parameter(j, rate + JACOBIAN_BUMP)
            down = curve.with_parameter(j, rate - JACOBIAN_BUMP)
            for i, instrument in enumerate(instruments):
                sensitivity[i, j] = (
                    node_par_rate(instrument, up, spot_time) - node_par_rate(instrument, down, spot_time)
                ) / (2.0 * JACOBIAN_BUMP)
        return JacobianCalibrationMatrix.of([CurveParameterSize(name, n)], np.linalg.inv(sensitivity))
