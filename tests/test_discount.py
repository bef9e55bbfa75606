import math
from datetime import date, timedelta

import numpy as np
import pytest

from isda_calibration import discount
from isda_calibration.daycount import ACT_365F
from isda_calibration.discount import (
    IsdaDiscountCurveCalibrator,
    IsdaDiscountCurveDefinition,
    IsdaDiscountCurveNode,
    bootstrap_zero_curve,
    node_par_rate,
)
from isda_calibration.errors import CurveConfigurationError
from isda_calibration.instruments import FixedFloatSwap, TermDeposit
from isda_calibration.market import MarketData
from isda_calibration.metadata import CurveParameterSize
from isda_calibration.rootfinding import newton_raphson

VALUATION_DATE = date(2024, 1, 15)
QUOTES = {"USD-DEP-1M": 0.005, "USD-SWAP-2Y": 0.010, "USD-SWAP-5Y": 0.015}


def _definition(spot_days=2, currency="USD", compute_jacobian=False, spot_date=None):
    spot = spot_date or VALUATION_DATE + timedelta(days=spot_days)
    nodes = (
        IsdaDiscountCurveNode("1M", "USD-DEP-1M", TermDeposit.from_tenor(spot, 1), "USD", spot_days),
        IsdaDiscountCurveNode("2Y", "USD-SWAP-2Y", FixedFloatSwap.from_tenor(spot, 2), "USD", spot_days),
        IsdaDiscountCurveNode("5Y", "USD-SWAP-5Y", FixedFloatSwap.from_tenor(spot, 5), currency, spot_days),
    )
    return IsdaDiscountCurveDefinition(
        name="USD-ISDA",
        currency="USD",
        valuation_date=VALUATION_DATE,
        nodes=nodes,
        spot_date=spot_date,
        compute_jacobian=compute_jacobian,
    )


def _calibrate(**kwargs):
    definition = _definition(**kwargs)
    discount_factors = IsdaDiscountCurveCalibrator.standard().calibrate(definition, MarketData(VALUATION_DATE, QUOTES))
    return definition, discount_factors


def test_three_node_curve_discount_factors_decrease():
    _, discount_factors = _calibrate()
    curve = discount_factors.curve
    assert discount_factors.discount_factor(VALUATION_DATE) == 1.0
    assert curve.df(0.0) == 1.0
    grid = np.linspace(0.0, 7.0, 200)
    dfs = np.array([curve.df(t) for t in grid])
    assert np.all(np.diff(dfs) < 0.0)


def test_nodes_reprice_at_par():
    definition, discount_factors = _calibrate()
    curve = discount_factors.curve
    spot_time = ACT_365F.year_fraction(VALUATION_DATE, definition.resolved_spot_date())
    for node in definition.nodes:
        rate = QUOTES[node.observable_id]
        assert node_par_rate(node.instrument, curve, spot_time) == pytest.approx(rate, abs=1e-10)


def test_knots_follow_nodes_shifted_to_valuation_date():
    definition, discount_factors = _calibrate()
    curve = discount_factors.curve
    spot_time = 2.0 / 365.0
    assert curve.parameter_count == len(definition.nodes)
    assert all(t2 > t1 for t1, t2 in zip(curve.knot_times, curve.knot_times[1:]))
    np.testing.assert_allclose(curve.knot_times, [node.time + spot_time for node in definition.nodes], rtol=1e-12)
    assert [meta.label for meta in curve.metadata.parameter_metadata] == ["1M", "2Y", "5Y"]


def test_no_shift_when_spot_is_valuation_date():
    definition, discount_factors = _calibrate(spot_date=VALUATION_DATE)
    curve = discount_factors.curve
    np.testing.assert_allclose(curve.knot_times, [node.time for node in definition.nodes])
    deposit = definition.nodes[0].instrument
    expected = math.log1p(0.005 * deposit.year_fraction) / deposit.maturity
    assert curve.parameter(0) == pytest.approx(expected, rel=1e-14)


def test_bootstrap_single_deposit_is_closed_form():
    deposit = TermDeposit(maturity=0.25, year_fraction=0.25 * 365.0 / 360.0, rate=0.03)
    curve = bootstrap_zero_curve([deposit])
    assert curve.parameter(0) == deposit.zero_rate()
    assert deposit.par_rate(curve) == pytest.approx(0.03, abs=1e-14)


def test_bootstrap_swaps_with_flat_quotes_give_flat_curve():
    swaps = [
        FixedFloatSwap(payment_times=tuple(range(1, n + 1)), year_fractions=(1.0,) * n, rate=0.02)
        for n in (1, 3, 5)
    ]
    curve = bootstrap_zero_curve(swaps)
    np.testing.assert_allclose(curve.zero_rates, math.log(1.02), rtol=1e-10)


def test_swap_repriced_by_previous_knot_skips_root_search(monkeypatch):
    calls = []

    def counting_newton(*args, **kwargs):
        calls.append(args)
        return newton_raphson(*args, **kwargs)

    monkeypatch.setattr(discount, "newton_raphson", counting_newton)
    deposit = TermDeposit(maturity=0.5, year_fraction=0.5, rate=0.0)
    swaps = [FixedFloatSwap(payment_times=(1.0, 2.0), year_fractions=(1.0, 1.0), rate=0.0)]
    curve = bootstrap_zero_curve([deposit] + swaps)
    # a zero coupon swap already prices at par on a zero curve
    assert calls == []
    assert curve.parameter(1) == curve.parameter(0) == 0.0

    curve = bootstrap_zero_curve([deposit.with_rate(0.01), swaps[0].with_rate(0.02)])
    assert len(calls) == 1
    assert curve.parameter(1) > 0.0


def test_jacobian_is_lower_triangular():
    _, discount_factors = _calibrate(compute_jacobian=True)
    jacobian = discount_factors.metadata.jacobian
    assert jacobian is not None
    assert jacobian.order == (CurveParameterSize("USD-ISDA", 3),)
    matrix = jacobian.jacobian_matrix
    assert matrix.shape == (3, 3)
    np.testing.assert_allclose(np.triu(matrix, 1), 0.0, atol=1e-12)
    assert np.all(np.diag(matrix) > 0.0)


def test_mixed_currencies_rejected():
    with pytest.raises(CurveConfigurationError):
        _calibrate(currency="EUR")


def test_mixed_spot_days_rejected():
    definition = _definition()
    nodes = definition.nodes[:2] + (
        IsdaDiscountCurveNode("5Y", "USD-SWAP-5Y", definition.nodes[2].instrument, "USD", spot_days=1),
    )
    bad = IsdaDiscountCurveDefinition("USD-ISDA", "USD", VALUATION_DATE, nodes)
    with pytest.raises(CurveConfigurationError):
        IsdaDiscountCurveCalibrator().calibrate(bad, MarketData(VALUATION_DATE, QUOTES))


def test_unordered_nodes_rejected():
    definition = _definition()
    reordered = IsdaDiscountCurveDefinition("USD-ISDA", "USD", VALUATION_DATE, definition.nodes[::-1])
    with pytest.raises(CurveConfigurationError):
        IsdaDiscountCurveCalibrator().calibrate(reordered, MarketData(VALUATION_DATE, QUOTES))


def test_missing_quote_rejected():
    with pytest.raises(CurveConfigurationError):
        IsdaDiscountCurveCalibrator().calibrate(_definition(), MarketData(VALUATION_DATE, {"USD-DEP-1M": 0.005}))
