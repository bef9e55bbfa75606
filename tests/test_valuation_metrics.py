import math

import pytest

from isda_calibration.curves import FlatDiscountCurve, IsdaCompliantCurve
from isda_calibration.instruments import CdsInstrument
from isda_calibration.valuation import AccrualOnDefaultFormula, AnalyticCdsPricer, PriceType


def _fixtures():
    hazard = IsdaCompliantCurve.flat(0.02)
    discount = FlatDiscountCurve(rate=0.01)
    cds = CdsInstrument.standard(5.0, coupon=0.01, frequency=4, recovery_rate=0.4)
    return hazard, discount, cds


def test_protection_leg_matches_closed_form():
    hazard, discount, cds = _fixtures()
    total = 0.02 + 0.01
    expected = 0.6 * 0.02 / total * (1.0 - math.exp(-total * 5.0))
    assert math.isclose(AnalyticCdsPricer().protection_leg(cds, discount, hazard), expected, rel_tol=1e-12)


def test_protection_leg_small_rates_use_expansion():
    cds = CdsInstrument.standard(1.0)
    tiny = IsdaCompliantCurve.flat(1e-8)
    zero = FlatDiscountCurve(rate=0.0)
    value = AnalyticCdsPricer().protection_leg(cds, zero, tiny)
    assert math.isclose(value, 0.6 * (1.0 - math.exp(-1e-8)), rel_tol=1e-9)


def test_coupons_without_default_risk():
    _, discount, cds = _fixtures()
    no_default = IsdaCompliantCurve.flat(0.0)
    breakdown = AnalyticCdsPricer().premium_leg_breakdown(cds, discount, no_default)
    expected = sum(0.25 * discount.df(0.25 * k) for k in range(1, 21))
    assert math.isclose(breakdown.coupon_pv, expected, rel_tol=1e-12)
    assert breakdown.accrual_on_default_pv == 0.0


def test_premium_leg_scales_with_coupon():
    hazard, discount, cds = _fixtures()
    pricer = AnalyticCdsPricer()
    annuity = pricer.annuity(cds, discount, hazard)
    protection = pricer.protection_leg(cds, discount, hazard)
    spread = 150.0 / 10_000.0
    assert math.isclose(pricer.pv(cds, discount, hazard, spread), protection - spread * annuity, rel_tol=1e-12)


def test_par_spread_zeroes_pv():
    hazard, discount, cds = _fixtures()
    pricer = AnalyticCdsPricer()
    spread = pricer.par_spread(cds, discount, hazard)
    assert abs(pricer.pv(cds, discount, hazard, spread)) < 1e-14
    # credit triangle: spread is close to hazard times loss given default
    assert spread == pytest.approx(0.02 * 0.6, rel=5e-3)


def test_clean_and_dirty_annuity_differ_by_accrued():
    hazard, discount, _ = _fixtures()
    coupons = CdsInstrument.standard(5.0).coupons
    cds = CdsInstrument(
        coupons=coupons,
        effective_protection_start=0.0,
        protection_end=5.0,
        accrued_year_fraction=0.1,
    )
    pricer = AnalyticCdsPricer()
    dirty = pricer.annuity(cds, discount, hazard, PriceType.DIRTY)
    clean = pricer.annuity(cds, discount, hazard, PriceType.CLEAN)
    assert math.isclose(dirty - clean, 0.1, rel_tol=1e-12)


def test_accrual_formulas_are_close():
    hazard, discount, cds = _fixtures()
    values = [
        AnalyticCdsPricer(formula).premium_leg_breakdown(cds, discount, hazard).accrual_on_default_pv
        for formula in AccrualOnDefaultFormula
    ]
    assert all(v > 0.0 for v in values)
    assert (max(values) - min(values)) / max(values) < 2e-2
    assert AccrualOnDefaultFormula.ORIGINAL_ISDA.omega == pytest.approx(1.0 / 730.0)


def test_pv_sensitivity_to_hazard_is_positive():
    hazard, discount, cds = _fixtures()
    pricer = AnalyticCdsPricer()
    # protection buyer gains when hazard rises
    assert pricer.pv_sensitivity(cds, discount, hazard, 0.01, 0) > 0.0
    assert pricer.par_spread_sensitivity(cds, discount, hazard, 0) == pytest.approx(0.6, rel=2e-2)
