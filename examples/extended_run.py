"""Run the sample calibration and print sensitivity, hedging, CS01 and bond tables."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from isda_calibration.bonds import BondHazardRateSolver
from isda_calibration.cli import CalibrationRun, load_config, run_calibration
from isda_calibration.cs01 import SpreadSensitivityCalculator
from isda_calibration.hedging import HedgeRatioCalculator, hedge_notionals
from isda_calibration.instruments import Bond, CdsInstrument
from isda_calibration.reporting import render_table
from isda_calibration.sensitivity import (
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    MarketQuoteSensitivityCalculator,
)
from isda_calibration.valuation import PriceType

CONFIG_PATH = Path(__file__).with_name("sample_curves.yaml")
TARGET_MATURITY = 4.0
TARGET_COUPON = 0.05
NOTIONAL = 10_000_000.0


def _node_instruments(run: CalibrationRun) -> List[CdsInstrument]:
    recovery_rate = run.provider.recovery_rates(run.credit_curve.legal_entity_id).recovery_rate
    return [node.resolve(recovery_rate) for node in run.definition.nodes]


def _market_quote_table(run: CalibrationRun, target: CdsInstrument) -> pd.DataFrame:
    pricer = run.calibrator.pricer
    curve = run.credit_curve.curve
    parameter_sensitivity = pricer.pv_sensitivities(target, run.discount_factors.curve, curve, TARGET_COUPON)
    quote_sensitivity = MarketQuoteSensitivityCalculator().sensitivity(
        CurrencyParameterSensitivities.of(
            [CurrencyParameterSensitivity(curve.name, run.definition.currency, parameter_sensitivity)]
        ),
        run.provider,
    )
    block = quote_sensitivity.get(curve.name, run.definition.currency)
    return pd.DataFrame(
        [
            {
                "Node": meta.label,
                "dPV/dRate": param,
                "dPV/dQuote (per bp)": quote * 1e-4 * NOTIONAL,
            }
            for meta, param, quote in zip(block.parameter_metadata, parameter_sensitivity, block.sensitivity)
        ]
    )


def _hedge_table(run: CalibrationRun, target: CdsInstrument) -> pd.DataFrame:
    hedges = _node_instruments(run)
    coupons = [run.market_data.value(node.observable_id) for node in run.definition.nodes]
    ratios = HedgeRatioCalculator(run.calibrator.pricer).hedge_ratios(
        target, TARGET_COUPON, hedges, coupons, run.discount_factors.curve, run.credit_curve.curve
    )
    return pd.DataFrame(
        {
            "Hedge": [node.label for node in run.definition.nodes],
            "Ratio": ratios,
            "Notional": hedge_notionals(ratios, NOTIONAL),
        }
    )


def _cs01_table(run: CalibrationRun, target: CdsInstrument) -> pd.DataFrame:
    calculator = SpreadSensitivityCalculator(run.calibrator)
    market = _node_instruments(run)
    quotes = [run.market_data.value(node.observable_id) for node in run.definition.nodes]
    convention = run.definition.nodes[0].quote_convention
    yield_curve = run.discount_factors.curve
    buckets = calculator.bucketed_cs01(target, TARGET_COUPON, yield_curve, market, quotes, convention)
    parallel = calculator.parallel_cs01(target, TARGET_COUPON, yield_curve, market, quotes, convention)
    rows = [
        {"Bucket": node.label, "CS01 (per bp)": value * 1e-4 * NOTIONAL}
        for node, value in zip(run.definition.nodes, buckets)
    ]
    rows.append({"Bucket": "Parallel", "CS01 (per bp)": parallel * 1e-4 * NOTIONAL})
    return pd.DataFrame(rows)


def _bond_table(run: CalibrationRun) -> pd.DataFrame:
    solver = BondHazardRateSolver(run.calibrator.pricer)
    yield_curve = run.discount_factors.curve
    cds = CdsInstrument.standard(5.0)
    rows = []
    for clean_price in (1.00, 0.98, 0.95, 0.90):
        bond = Bond.fixed_coupon(5.0, 0.045, recovery_rate=0.4)
        hazard = solver.hazard_rate(bond, yield_curve, clean_price, PriceType.CLEAN)
        spread = solver.equivalent_cds_spread(bond, yield_curve, clean_price, cds, PriceType.CLEAN)
        rows.append({"Clean price": clean_price, "Hazard (%)": hazard * 100.0, "CDS spread (bps)": spread * 1e4})
    return pd.DataFrame(rows)


def run_examples(config_path: Path = CONFIG_PATH) -> None:
    run = run_calibration(load_config(config_path))
    target = CdsInstrument.standard(TARGET_MATURITY, TARGET_COUPON, recovery_rate=0.4)
    print(render_table(_market_quote_table(run, target), f"{TARGET_MATURITY:g}Y CDS market quote sensitivities"))
    print(render_table(_hedge_table(run, target), "Hedge ratios against curve nodes"))
    print(render_table(_cs01_table(run, target), "Bucketed and parallel CS01"))
    print(render_table(_bond_table(run), "Bond implied hazard rates"))


def main() -> None:
    run_examples()


if __name__ == "__main__":
    main()
