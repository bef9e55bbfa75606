import math

import numpy as np
import pytest

from isda_calibration.curves import FlatDiscountCurve, IsdaCompliantCurve, build_from_zero_rates
from isda_calibration.hazard import hazard_segments


def _curve():
    return IsdaCompliantCurve.of([0.5, 1.0, 3.0, 5.0], [0.010, 0.012, 0.015, 0.018])


def test_rt_is_linear_between_knots():
    curve = _curve()
    assert math.isclose(curve.rt(0.25), 0.010 * 0.25)
    expected = 0.5 * (0.012 * 1.0) + 0.5 * (0.015 * 3.0)
    assert math.isclose(curve.rt(2.0), expected, rel_tol=1e-14)
    assert math.isclose(curve.rt(3.0), 0.045, rel_tol=1e-14)


def test_extrapolation_keeps_last_forward():
    curve = _curve()
    forward = (0.018 * 5.0 - 0.015 * 3.0) / 2.0
    assert math.isclose(curve.forward_rate(7.0), forward, rel_tol=1e-12)
    assert math.isclose(curve.rt(7.0), 0.018 * 5.0 + 2.0 * forward, rel_tol=1e-12)


def test_discount_factor_at_zero_is_one():
    assert _curve().df(0.0) == 1.0
    assert _curve().zero_rate(0.0) == pytest.approx(0.010)


def test_forward_rates_match_segments():
    curve = _curve()
    segments = hazard_segments(curve)
    assert [s.end for s in segments] == list(curve.knot_times)
    for segment in segments:
        mid = 0.5 * (segment.start + segment.end)
        assert math.isclose(curve.forward_rate(mid), segment.hazard_rate, rel_tol=1e-12)


def test_rejects_unordered_knots():
    with pytest.raises(ValueError):
        IsdaCompliantCurve.of([1.0, 1.0], [0.01, 0.02])
    with pytest.raises(ValueError):
        IsdaCompliantCurve.of([], [])
    with pytest.raises(ValueError):
        IsdaCompliantCurve.of([1.0, 2.0], [0.01])


def test_curve_is_immutable():
    curve = _curve()
    bumped = curve.with_parameter(1, 0.02)
    assert curve.parameter(1) == 0.012
    assert bumped.parameter(1) == 0.02
    with pytest.raises(ValueError):
        curve.r[0] = 1.0


@pytest.mark.parametrize("time", [0.2, 0.5, 0.8, 1.0, 2.0, 4.5, 6.0])
@pytest.mark.parametrize("node", [0, 1, 2, 3])
def test_rt_sensitivity_matches_bump(time, node):
    curve = _curve()
    rt, sense = curve.rt_and_sensitivity(time, node)
    bump = 1e-7
    up = curve.with_parameter(node, curve.parameter(node) + bump).rt(time)
    down = curve.with_parameter(node, curve.parameter(node) - bump).rt(time)
    assert math.isclose(rt, curve.rt(time), rel_tol=1e-14)
    assert sense == pytest.approx((up - down) / (2 * bump), abs=1e-7)


def test_positive_offset_drops_earlier_knots():
    curve = _curve()
    shifted = curve.with_offset(1.5)
    np.testing.assert_allclose(shifted.knot_times, [1.5, 3.5])
    for t in (0.1, 1.0, 2.0, 3.5, 5.0):
        assert math.isclose(shifted.df(t), curve.df(1.5 + t) / curve.df(1.5), rel_tol=1e-12)


def test_negative_offset_moves_knots_out():
    curve = _curve()
    offset = -2.0 / 365.0
    shifted = curve.with_offset(offset)
    assert shifted.parameter_count == curve.parameter_count
    np.testing.assert_allclose(shifted.knot_times, np.asarray(curve.knot_times) - offset)
    assert shifted.df(0.0) == 1.0
    for t in (0.6, 2.0, 5.0):
        assert math.isclose(shifted.df(t - offset), curve.df(t) / curve.df(offset), rel_tol=1e-12)


def test_offset_beyond_last_knot_is_flat():
    curve = _curve()
    shifted = curve.with_offset(6.0)
    assert shifted.parameter_count == 1
    assert math.isclose(shifted.zero_rate(2.0), curve.forward_rate(6.0), rel_tol=1e-12)


def test_flat_curves_agree():
    flat = FlatDiscountCurve(rate=0.03)
    isda = IsdaCompliantCurve.flat(0.03)
    for t in (0.0, 0.5, 1.0, 10.0):
        assert math.isclose(flat.df(t), isda.df(t), rel_tol=1e-14)


def test_build_from_zero_rates_sorts_pillars():
    curve = build_from_zero_rates([(2.0, 0.02), (1.0, 0.01)])
    assert curve.knot_times == (1.0, 2.0)
    assert curve.parameter(0) == 0.01
