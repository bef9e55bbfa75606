"""Command line entrypoints."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import typer
import yaml

from .calibration import CdsIsdaCreditCurveNode, IsdaCreditCurveCalibrator, IsdaCreditCurveDefinition
from .curves import IsdaCompliantCurve
from .daycount import ACT_360, get_day_count
from .discount import IsdaDiscountCurveCalibrator, IsdaDiscountCurveDefinition, IsdaDiscountCurveNode
from .errors import CalibrationError
from .hazard import ArbitrageHandling
from .instruments import CdsInstrument, FixedFloatSwap, TermDeposit, add_months
from .market import ConstantRecoveryRates, CreditRatesProvider, IsdaDiscountFactors, LegalEntitySurvivalProbabilities, MarketData
from .metadata import CurveMetadata, ParameterMetadata
from .plots import save_core_diagnostics
from .quotes import CdsQuoteConvention
from .reporting import curve_frame, par_reconciliation, price_nodes, render_table, to_frame, upfront_reconciliation
from .valuation import AccrualOnDefaultFormula

app = typer.Typer(help="ISDA discount and credit curve calibration utilities")

_TENOR = re.compile(r"^\s*(\d+)\s*([MY])\s*$", re.IGNORECASE)


@dataclass(slots=True)
class CalibrationRun:
    """Everything produced by one configuration file."""

    discount_factors: IsdaDiscountFactors
    credit_curve: LegalEntitySurvivalProbabilities
    provider: CreditRatesProvider
    definition: IsdaCreditCurveDefinition
    market_data: MarketData
    calibrator: IsdaCreditCurveCalibrator


def load_config(path: Path) -> Dict[str, Any]:
    """Read a YAML or JSON calibration configuration."""
    with path.open("r", encoding="utf-8") as fh:
        if path.suffix in {".yml", ".yaml"}:
            return yaml.safe_load(fh)
        return json.load(fh)


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date: {value}") from exc


def _tenor_months(tenor: str) -> int:
    match = _TENOR.match(str(tenor))
    if match is None:
        raise typer.BadParameter(f"Invalid tenor '{tenor}', expected e.g. 6M or 5Y")
    count = int(match.group(1))
    return count * 12 if match.group(2).upper() == "Y" else count


def _enum_option(enum_cls, value: Any, default):
    if value is None:
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise typer.BadParameter(f"Unknown {enum_cls.__name__} '{value}' (choose from {choices})") from exc


def _build_discount_curve(
    config: Dict[str, Any], valuation_date: date, currency: str
) -> Tuple[Optional[IsdaDiscountCurveDefinition], Dict[str, float], Optional[IsdaDiscountFactors]]:
    """Discount curve definition and quotes, or ready-made flat discount factors."""
    curve_cfg = config.get("discount_curve", {"type": "flat", "rate": 0.01})
    curve_type = curve_cfg.get("type", "isda")
    name = curve_cfg.get("name", f"{currency}-ISDA")
    day_count = get_day_count(curve_cfg.get("day_count", "ACT/365F"))
    if curve_type == "flat":
        curve = IsdaCompliantCurve.flat(
            float(curve_cfg.get("rate", 0.01)),
            CurveMetadata(name, day_count.name, (ParameterMetadata("flat", 1.0),)),
        )
        return None, {}, IsdaDiscountFactors(currency, valuation_date, curve, day_count)
    if curve_type != "isda":
        raise typer.BadParameter(f"Unknown discount curve type: {curve_type}")

    node_cfgs = curve_cfg.get("nodes")
    if not node_cfgs:
        raise typer.BadParameter("discount_curve.nodes missing from configuration")
    spot_days = int(curve_cfg.get("spot_days", 2))
    spot_date = _parse_date(curve_cfg["spot_date"]) if "spot_date" in curve_cfg else None
    anchor = spot_date if spot_date is not None else valuation_date + timedelta(days=spot_days)
    swap_frequency = int(curve_cfg.get("swap_frequency_months", 12))

    nodes: List[IsdaDiscountCurveNode] = []
    quotes: Dict[str, float] = {}
    for item in node_cfgs:
        kind = item.get("type", "swap")
        tenor = str(item["tenor"]).upper()
        months = _tenor_months(tenor)
        if kind == "deposit":
            instrument = TermDeposit.from_tenor(anchor, months, curve_day_count=day_count)
        elif kind == "swap":
            if months % 12:
                raise typer.BadParameter(f"Swap tenor must be in whole years, got {tenor}")
            instrument = FixedFloatSwap.from_tenor(
                anchor, months // 12, frequency_months=swap_frequency, curve_day_count=day_count
            )
        else:
            raise typer.BadParameter(f"Unknown discount node type: {kind}")
        observable_id = f"{currency}-{kind.upper()}-{tenor}"
        quotes[observable_id] = float(item["rate"])
        nodes.append(IsdaDiscountCurveNode(tenor, observable_id, instrument, currency, spot_days))

    definition = IsdaDiscountCurveDefinition(
        name=name,
        currency=currency,
        valuation_date=valuation_date,
        nodes=tuple(nodes),
        day_count=day_count,
        spot_date=spot_date,
        compute_jacobian=bool(curve_cfg.get("compute_jacobian", False)),
    )
    return definition, quotes, None


def _previous_roll_date(valuation_date: date) -> date:
    """Most recent 20 Mar/Jun/Sep/Dec on or before ``valuation_date``."""
    month = valuation_date.month - (valuation_date.month % 3)
    year = valuation_date.year
    if month == 0:
        month, year = 12, year - 1
    roll = date(year, month, 20)
    if roll > valuation_date:
        roll = add_months(roll, -3)
    return roll


def _build_credit_definition(
    config: Dict[str, Any], valuation_date: date, currency: str, day_count_name: str
) -> Tuple[IsdaCreditCurveDefinition, Dict[str, float], str, float]:
    credit_cfg = config.get("credit_curve")
    if not credit_cfg:
        raise typer.BadParameter("credit_curve missing from configuration")
    quotes_cfg = credit_cfg.get("quotes")
    if not quotes_cfg:
        raise typer.BadParameter("credit_curve.quotes missing from configuration")
    entity = str(credit_cfg.get("legal_entity", "ENTITY"))
    recovery_rate = float(credit_cfg.get("recovery_rate", 0.4))
    convention = _enum_option(CdsQuoteConvention, credit_cfg.get("quote_convention"), CdsQuoteConvention.PAR_SPREAD)
    coupon = float(credit_cfg.get("coupon", 0.01))
    step_in_days = int(credit_cfg.get("step_in_days", 1))
    cash_settle_days = int(credit_cfg.get("cash_settle_days", 3))
    day_count = get_day_count(day_count_name)

    accrual_start = _previous_roll_date(valuation_date)
    nodes: List[CdsIsdaCreditCurveNode] = []
    quotes: Dict[str, float] = {}
    for item in quotes_cfg:
        tenor = str(item["tenor"]).upper()
        maturity = add_months(accrual_start, _tenor_months(tenor) + 3)
        instrument = CdsInstrument.from_dates(
            valuation_date,
            accrual_start,
            maturity,
            coupon,
            step_in_days=step_in_days,
            cash_settle_days=cash_settle_days,
            recovery_rate=recovery_rate,
            curve_day_count=day_count,
            accrual_day_count=ACT_360,
        )
        observable_id = f"{entity}-CDS-{tenor}"
        quotes[observable_id] = float(item["quote"])
        nodes.append(CdsIsdaCreditCurveNode(tenor, observable_id, entity, currency, instrument, convention))

    definition = IsdaCreditCurveDefinition(
        name=credit_cfg.get("name", f"{entity}-{currency}"),
        currency=currency,
        valuation_date=valuation_date,
        nodes=tuple(nodes),
        day_count=day_count,
        compute_jacobian=bool(credit_cfg.get("compute_jacobian", False)),
    )
    return definition, quotes, entity, recovery_rate


def run_calibration(config: Dict[str, Any]) -> CalibrationRun:
    """Calibrate the discount curve and then the credit curve described by ``config``."""
    if "valuation_date" not in config:
        raise typer.BadParameter("valuation_date missing from configuration")
    valuation_date = _parse_date(config["valuation_date"])
    currency = str(config.get("currency", "USD"))

    discount_definition, discount_quotes, flat = _build_discount_curve(config, valuation_date, currency)
    day_count_name = discount_definition.day_count.name if discount_definition is not None else flat.day_count.name
    credit_definition, credit_quotes, entity, recovery_rate = _build_credit_definition(
        config, valuation_date, currency, day_count_name
    )
    market_data = MarketData(valuation_date, {**discount_quotes, **credit_quotes})

    if discount_definition is not None:
        discount_factors = IsdaDiscountCurveCalibrator.standard().calibrate(discount_definition, market_data)
    else:
        discount_factors = flat

    credit_cfg = config["credit_curve"]
    calibrator = IsdaCreditCurveCalibrator(
        arbitrage_handling=_enum_option(
            ArbitrageHandling, credit_cfg.get("arbitrage_handling"), ArbitrageHandling.IGNORE
        ),
        formula=_enum_option(
            AccrualOnDefaultFormula, credit_cfg.get("accrual_on_default"), AccrualOnDefaultFormula.ORIGINAL_ISDA
        ),
    )
    provider = (
        CreditRatesProvider(valuation_date)
        .with_discount_curve(discount_factors)
        .with_recovery_rates(ConstantRecoveryRates(entity, valuation_date, recovery_rate))
    )
    credit_curve = calibrator.calibrate(credit_definition, market_data, provider)
    return CalibrationRun(
        discount_factors=discount_factors,
        credit_curve=credit_curve,
        provider=provider.with_credit_curve(credit_curve),
        definition=credit_definition,
        market_data=market_data,
        calibrator=calibrator,
    )


def _reconciliation(run: CalibrationRun):
    nodes = run.definition.nodes
    labels = [node.label for node in nodes]
    recovery_rate = run.provider.recovery_rates(nodes[0].legal_entity_id).recovery_rate
    instruments = [node.resolve(recovery_rate) for node in nodes]
    yield_curve = run.discount_factors.curve
    credit_curve = run.credit_curve.curve
    convention = nodes[0].quote_convention
    quotes = [run.market_data.value(node.observable_id) for node in nodes]
    if convention is CdsQuoteConvention.PAR_SPREAD:
        rows = par_reconciliation(labels, instruments, quotes, yield_curve, credit_curve, run.calibrator.pricer)
        return "Par Spread Reconciliation", rows, quotes
    triples = [
        run.calibrator.converter.standardise(cds, quote, convention, yield_curve)
        for cds, quote in zip(instruments, quotes)
    ]
    coupons = [triple.coupon for triple in triples]
    rows = upfront_reconciliation(
        labels,
        instruments,
        coupons,
        [triple.points_upfront for triple in triples],
        yield_curve,
        credit_curve,
        run.calibrator.pricer,
    )
    return "Points Upfront Reconciliation", rows, coupons


@app.command()
def main(
    config_path: Path,
    plot_dir: Optional[Path] = typer.Option(None, "--plot-dir", "-p", help="Directory for PNG diagnostics"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Logging level"),
) -> None:
    """Calibrate discount and credit curves, print node tables, and optionally save plots."""

    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_config(config_path)
    try:
        run = run_calibration(config)
        title, rows, coupons = _reconciliation(run)
    except CalibrationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    discount_curve = run.discount_factors.curve
    credit_curve = run.credit_curve.curve
    nodes = run.definition.nodes
    discount_labels = [meta.label for meta in discount_curve.metadata.parameter_metadata]

    typer.echo(f"Valuation date: {run.definition.valuation_date.isoformat()}")
    typer.echo(f"Legal entity:   {run.credit_curve.legal_entity_id} ({run.definition.currency})")
    typer.echo(f"Quote convention: {nodes[0].quote_convention.value}")
    typer.echo("")
    typer.echo(render_table(curve_frame(discount_curve, discount_labels), f"Discount Curve {discount_curve.name}"))
    typer.echo(render_table(curve_frame(credit_curve, [node.label for node in nodes]), f"Credit Curve {credit_curve.name}"))
    table = to_frame(rows).rename(
        columns={"label": "Node", "maturity": "Time (y)", "market_bps": "Market (bps)", "model_bps": "Model (bps)", "error_bps": "Error (bps)"}
    )
    typer.echo(render_table(table, title))

    recovery_rate = run.provider.recovery_rates(nodes[0].legal_entity_id).recovery_rate
    pricing_rows = price_nodes(
        [node.label for node in nodes],
        [node.resolve(recovery_rate) for node in nodes],
        coupons,
        discount_curve,
        credit_curve,
        run.calibrator.pricer,
    )
    notional = float(config.get("notional", 1.0))
    if notional <= 0:
        raise typer.BadParameter("notional must be positive")
    pricing = to_frame(pricing_rows)
    numeric = pricing.columns.drop(["label", "maturity"])
    pricing[numeric] = pricing[numeric] * notional
    typer.echo(render_table(pricing, f"Node Leg Values (notional {notional:,.2f})"))

    jacobian = credit_curve.metadata.jacobian if credit_curve.metadata is not None else None
    if jacobian is not None:
        labels = [node.label for node in nodes]
        frame = pd.DataFrame(np.asarray(jacobian.jacobian_matrix), index=labels, columns=labels)
        typer.echo(f"Calibration Jacobian d(rate)/d(quote)\n{frame.to_string(float_format=lambda x: f'{x:,.4f}')}\n")

    if plot_dir is not None:
        plot_dir = plot_dir.expanduser()
        written = save_core_diagnostics(discount_curve, credit_curve, pricing_rows, plot_dir)
        typer.echo(f"Saved {len(written)} diagnostic plots under {plot_dir.resolve()}")


if __name__ == "__main__":
    app()
