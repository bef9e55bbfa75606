import math

import pytest

from isda_calibration.bonds import BondHazardRateSolver
from isda_calibration.curves import IsdaCompliantCurve
from isda_calibration.errors import MarketDataRangeError
from isda_calibration.instruments import Bond, CdsInstrument
from isda_calibration.valuation import AnalyticCdsPricer, PriceType


def _fixtures():
    solver = BondHazardRateSolver()
    yield_curve = IsdaCompliantCurve.flat(0.02)
    bond = Bond.fixed_coupon(5.0, 0.05, frequency=2, recovery_rate=0.4, accrued_interest=0.01)
    return solver, yield_curve, bond


def test_price_matches_closed_form_on_flat_curves():
    solver, yield_curve, bond = _fixtures()
    hazard = 0.03
    total = 0.02 + hazard
    cash_flows = sum(a * math.exp(-total * t) for t, a in zip(bond.payment_times, bond.payment_amounts))
    recovery = 0.4 * hazard / total * (1.0 - math.exp(-total * 5.0))
    assert solver.price(bond, yield_curve, hazard) == pytest.approx(cash_flows + recovery, rel=1e-12)
    assert solver.price(bond, yield_curve, hazard, PriceType.CLEAN) == pytest.approx(
        cash_flows + recovery - 0.01, rel=1e-12
    )


def test_implied_hazard_reprices_bond():
    solver, yield_curve, bond = _fixtures()
    clean = solver.price(bond, yield_curve, 0.025, PriceType.CLEAN)
    assert solver.hazard_rate(bond, yield_curve, clean) == pytest.approx(0.025, abs=1e-10)
    dirty = clean + bond.accrued_interest
    assert solver.hazard_rate(bond, yield_curve, dirty, PriceType.DIRTY) == pytest.approx(0.025, abs=1e-10)


def test_price_above_risk_free_rejected():
    solver, yield_curve, bond = _fixtures()
    risk_free = solver.price(bond, yield_curve, 0.0)
    with pytest.raises(MarketDataRangeError):
        solver.hazard_rate(bond, yield_curve, risk_free + 0.01, PriceType.DIRTY)


def test_price_below_recovery_rejected():
    solver, yield_curve, bond = _fixtures()
    with pytest.raises(MarketDataRangeError):
        solver.hazard_rate(bond, yield_curve, 0.35, PriceType.DIRTY)


def test_non_positive_price_rejected():
    solver, yield_curve, bond = _fixtures()
    with pytest.raises(MarketDataRangeError):
        solver.hazard_rate(bond, yield_curve, -0.5)


def test_equivalent_cds_spread_uses_bond_recovery():
    solver, yield_curve, bond = _fixtures()
    clean = solver.price(bond, yield_curve, 0.025, PriceType.CLEAN)
    cds = CdsInstrument.standard(5.0, recovery_rate=0.25)
    spread = solver.equivalent_cds_spread(bond, yield_curve, clean, cds)
    expected = AnalyticCdsPricer().par_spread(
        cds.with_recovery_rate(0.4), yield_curve, IsdaCompliantCurve.flat(solver.hazard_rate(bond, yield_curve, clean))
    )
    assert spread == pytest.approx(expected, rel=1e-12)
    assert spread == pytest.approx(0.025 * 0.6, rel=5e-3)
