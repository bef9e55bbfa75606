"""Reporting helpers for CLI/scripts."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence

import pandas as pd

from .curves import DiscountCurve, IsdaCompliantCurve
from .hazard import hazard_segments
from .instruments import CdsInstrument
from .valuation import AnalyticCdsPricer


@dataclass(slots=True)
class PricingRow:
    """Leg values of one CDS node per unit notional."""

    label: str
    maturity: float
    protection: float
    premium: float
    coupon: float
    accrual: float
    points_upfront: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(slots=True)
class ParErrorRow:
    """Market vs model quote reconciliation, in basis points."""

    label: str
    maturity: float
    market_bps: float
    model_bps: float
    error_bps: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def price_nodes(
    labels: Sequence[str],
    instruments: Sequence[CdsInstrument],
    coupons: Sequence[float],
    yield_curve: DiscountCurve,
    credit_curve: IsdaCompliantCurve,
    pricer: AnalyticCdsPricer | None = None,
) -> List[PricingRow]:
    pricer = pricer if pricer is not None else AnalyticCdsPricer()
    rows: List[PricingRow] = []
    for label, cds, coupon in zip(labels, instruments, coupons):
        breakdown = pricer.premium_leg_breakdown(cds, yield_curve, credit_curve)
        rows.append(
            PricingRow(
                label=label,
                maturity=cds.protection_end,
                protection=pricer.protection_leg(cds, yield_curve, credit_curve, valuation_time=0.0),
                premium=coupon * breakdown.total,
                coupon=coupon * breakdown.coupon_pv,
                accrual=coupon * breakdown.accrual_on_default_pv,
                points_upfront=pricer.points_upfront(cds, coupon, yield_curve, credit_curve),
            )
        )
    return rows


def par_reconciliation(
    labels: Sequence[str],
    instruments: Sequence[CdsInstrument],
    market_spreads: Sequence[float],
    yield_curve: DiscountCurve,
    credit_curve: IsdaCompliantCurve,
    pricer: AnalyticCdsPricer | None = None,
) -> List[ParErrorRow]:
    pricer = pricer if pricer is not None else AnalyticCdsPricer()
    rows: List[ParErrorRow] = []
    for label, cds, market in zip(labels, instruments, market_spreads):
        model = pricer.par_spread(cds, yield_curve, credit_curve)
        rows.append(
            ParErrorRow(
                label=label,
                maturity=cds.protection_end,
                market_bps=market * 10_000.0,
                model_bps=model * 10_000.0,
                error_bps=(model - market) * 10_000.0,
            )
        )
    return rows


def upfront_reconciliation(
    labels: Sequence[str],
    instruments: Sequence[CdsInstrument],
    coupons: Sequence[float],
    market_upfronts: Sequence[float],
    yield_curve: DiscountCurve,
    credit_curve: IsdaCompliantCurve,
    pricer: AnalyticCdsPricer | None = None,
) -> List[ParErrorRow]:
    """Same as :func:`par_reconciliation` but on points-upfront."""
    pricer = pricer if pricer is not None else AnalyticCdsPricer()
    rows: List[ParErrorRow] = []
    for label, cds, coupon, market in zip(labels, instruments, coupons, market_upfronts):
        model = pricer.points_upfront(cds, coupon, yield_curve, credit_curve)
        rows.append(
            ParErrorRow(
                label=label,
                maturity=cds.protection_end,
                market_bps=market * 10_000.0,
                model_bps=model * 10_000.0,
                error_bps=(model - market) * 10_000.0,
            )
        )
    return rows


def curve_frame(curve: IsdaCompliantCurve, labels: Sequence[str] | None = None) -> pd.DataFrame:
    """Knot table of a calibrated curve: zero rate, forward rate and discount factor."""
    labels = list(labels) if labels is not None else [f"node{i}" for i in range(curve.parameter_count)]
    return pd.DataFrame(
        [
            {
                "Node": label,
                "Time (y)": segment.end,
                "Zero Rate (%)": rate * 100.0,
                "Forward (%)": segment.hazard_rate * 100.0,
                "DF": curve.df(segment.end),
            }
            for label, rate, segment in zip(labels, curve.zero_rates, hazard_segments(curve))
        ]
    )


def to_frame(rows: Sequence) -> pd.DataFrame:
    return pd.DataFrame([row.as_dict() for row in rows])


def render_table(df: pd.DataFrame, title: str) -> str:
    """Return a simple console-friendly table with a title banner."""
    content = df.to_string(index=False, float_format=lambda x: f"{x:,.6f}")
    border = "=" * len(title)
    return f"{title}\n{border}\n{content}\n"
