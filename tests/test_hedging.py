import numpy as np
import pytest

from isda_calibration.curves import IsdaCompliantCurve
from isda_calibration.errors import CurveConfigurationError
from isda_calibration.hazard import FastCreditCurveBuilder
from isda_calibration.hedging import HedgeRatioCalculator, hedge_notionals, solve_hedge_ratios
from isda_calibration.instruments import CdsInstrument


def _fixtures():
    yield_curve = IsdaCompliantCurve.flat(0.02)
    maturities = (1.0, 3.0, 5.0)
    hedges = [CdsInstrument.standard(m, 0.01) for m in maturities]
    credit_curve = FastCreditCurveBuilder()(hedges, [0.006, 0.009, 0.012], [0.0, 0.0, 0.0], yield_curve)
    target = CdsInstrument.standard(4.0, 0.05)
    return yield_curve, credit_curve, hedges, target


def test_square_hedge_is_neutral():
    yield_curve, credit_curve, hedges, target = _fixtures()
    calculator = HedgeRatioCalculator()
    ratios = calculator.hedge_ratios(target, 0.05, hedges, [0.01] * 3, yield_curve, credit_curve)
    b = calculator.cds_sensitivities(target, 0.05, yield_curve, credit_curve)
    a = calculator.hedge_sensitivity_matrix(hedges, [0.01] * 3, yield_curve, credit_curve)
    assert a.shape == (3, 3)
    np.testing.assert_allclose(b - a @ ratios, 0.0, atol=1e-10)
    # only the 5Y hedge reaches the last knot
    assert ratios[2] > 0.0


def test_least_squares_hedge_with_fewer_instruments():
    yield_curve, credit_curve, hedges, target = _fixtures()
    calculator = HedgeRatioCalculator()
    subset = [hedges[0], hedges[2]]
    ratios = calculator.hedge_ratios(target, 0.05, subset, [0.01, 0.01], yield_curve, credit_curve)
    b = calculator.cds_sensitivities(target, 0.05, yield_curve, credit_curve)
    a = calculator.hedge_sensitivity_matrix(subset, [0.01, 0.01], yield_curve, credit_curve)
    assert ratios.shape == (2,)
    # residual is orthogonal to the hedge columns
    np.testing.assert_allclose(a.T @ (b - a @ ratios), 0.0, atol=1e-10)


def test_too_many_hedges_rejected():
    a = np.arange(8.0).reshape(2, 4)
    with pytest.raises(CurveConfigurationError):
        solve_hedge_ratios([1.0, 2.0], a)


def test_target_size_must_match_knots():
    with pytest.raises(CurveConfigurationError):
        solve_hedge_ratios([1.0, 2.0, 3.0], np.eye(2))


def test_identity_system_returns_target():
    np.testing.assert_allclose(solve_hedge_ratios([0.3, -0.2], np.eye(2)), [0.3, -0.2])


def test_hedge_notionals_offset_position():
    np.testing.assert_allclose(hedge_notionals([0.5, 0.25], 1_000_000.0), [-500_000.0, -250_000.0])
