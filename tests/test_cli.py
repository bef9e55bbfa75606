import json
from datetime import date
from pathlib import Path

import yaml
from typer.testing import CliRunner

from isda_calibration.cli import _previous_roll_date, _tenor_months, app, load_config, run_calibration
from isda_calibration.quotes import CdsQuoteConvention

SAMPLE = Path(__file__).resolve().parents[1] / "examples" / "sample_curves.yaml"

runner = CliRunner()


def _sample_config():
    with SAMPLE.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def test_cli_prints_curves_and_reconciliation():
    result = runner.invoke(app, [str(SAMPLE)])
    assert result.exit_code == 0, result.output
    assert "Discount Curve USD-ISDA" in result.output
    assert "Credit Curve ACME-USD" in result.output
    assert "Par Spread Reconciliation" in result.output
    assert "Calibration Jacobian" in result.output


def test_cli_writes_plots(tmp_path):
    result = runner.invoke(app, [str(SAMPLE), "--plot-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "hazard_curve.png").exists()
    assert (tmp_path / "discount_curve.png").exists()


def test_cli_reports_calibration_errors(tmp_path):
    config = _sample_config()
    config["credit_curve"]["arbitrage_handling"] = "fail"
    config["credit_curve"]["quotes"] = [{"tenor": "1Y", "quote": 0.03}, {"tenor": "2Y", "quote": 0.01}]
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    result = runner.invoke(app, [str(path)])
    assert result.exit_code != 0


def test_json_config_with_flat_discount_curve(tmp_path):
    config = _sample_config()
    config["valuation_date"] = "2024-01-15"
    config["discount_curve"] = {"type": "flat", "rate": 0.02}
    config["credit_curve"]["quote_convention"] = "points_upfront"
    config["credit_curve"]["quotes"] = [{"tenor": "1Y", "quote": -0.004}, {"tenor": "5Y", "quote": 0.01}]
    path = tmp_path / "flat.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    run = run_calibration(load_config(path))
    assert run.discount_factors.curve.parameter_count == 1
    assert run.definition.nodes[0].quote_convention is CdsQuoteConvention.POINTS_UPFRONT
    assert run.credit_curve.curve.parameter_count == 2


def test_tenor_parsing():
    assert _tenor_months("6M") == 6
    assert _tenor_months("10y") == 120


def test_previous_roll_date():
    assert _previous_roll_date(date(2024, 1, 15)) == date(2023, 12, 20)
    assert _previous_roll_date(date(2024, 3, 20)) == date(2024, 3, 20)
    assert _previous_roll_date(date(2024, 3, 19)) == date(2023, 12, 20)
    assert _previous_roll_date(date(2024, 11, 30)) == date(2024, 9, 20)
