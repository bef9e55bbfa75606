import numpy as np
import pytest

from isda_calibration.calibration import IsdaCreditCurveCalibrator
from isda_calibration.cs01 import ShiftType, SpreadSensitivityCalculator
from isda_calibration.curves import IsdaCompliantCurve
from isda_calibration.errors import CurveConfigurationError
from isda_calibration.hazard import ArbitrageHandling, FastCreditCurveBuilder
from isda_calibration.instruments import CdsInstrument
from isda_calibration.quotes import CdsQuoteConvention, MarketQuoteConverter
from isda_calibration.valuation import AnalyticCdsPricer, PriceType

MATURITIES = (1.0, 3.0, 5.0, 7.0, 10.0)
PAR_SPREADS = [0.006, 0.0085, 0.011, 0.0125, 0.014]
BUMP = 1e-4


def _fixtures(coupon=0.01):
    calculator = SpreadSensitivityCalculator()
    yield_curve = IsdaCompliantCurve.flat(0.02)
    market = [CdsInstrument.standard(m, coupon) for m in MATURITIES]
    target = CdsInstrument.standard(4.0, 0.05)
    return calculator, yield_curve, market, target


def _pv_on_par_curve(target, coupon, yield_curve, market, spreads):
    curve = FastCreditCurveBuilder()(market, spreads, [0.0] * len(market), yield_curve)
    return AnalyticCdsPricer().pv(target, yield_curve, curve, coupon, PriceType.CLEAN)


def test_parallel_cs01_from_par_spreads_matches_manual_recalibration():
    calculator, yield_curve, market, target = _fixtures()
    cs01 = calculator.parallel_cs01(target, 0.05, yield_curve, market, PAR_SPREADS, CdsQuoteConvention.PAR_SPREAD)
    base = _pv_on_par_curve(target, 0.05, yield_curve, market, PAR_SPREADS)
    bumped = _pv_on_par_curve(target, 0.05, yield_curve, market, [s + BUMP for s in PAR_SPREADS])
    assert cs01 == pytest.approx((bumped - base) / BUMP, rel=1e-12)
    # protection buyer gains when spreads widen, by a little more than the risky annuity
    assert 3.5 < cs01 < 5.0


def test_relative_shift_scales_each_spread():
    calculator, yield_curve, market, target = _fixtures()
    cs01 = calculator.parallel_cs01(
        target, 0.05, yield_curve, market, PAR_SPREADS, CdsQuoteConvention.PAR_SPREAD, 0.01, ShiftType.RELATIVE
    )
    base = _pv_on_par_curve(target, 0.05, yield_curve, market, PAR_SPREADS)
    bumped = _pv_on_par_curve(target, 0.05, yield_curve, market, [s * 1.01 for s in PAR_SPREADS])
    assert cs01 == pytest.approx((bumped - base) / 0.01, rel=1e-12)


def test_bucketed_cs01_matches_manual_recalibration_and_sums_to_parallel():
    calculator, yield_curve, market, target = _fixtures()
    buckets = calculator.bucketed_cs01(target, 0.05, yield_curve, market, PAR_SPREADS, CdsQuoteConvention.PAR_SPREAD)
    base = _pv_on_par_curve(target, 0.05, yield_curve, market, PAR_SPREADS)
    for index in range(len(MATURITIES)):
        spreads = list(PAR_SPREADS)
        spreads[index] += BUMP
        expected = (_pv_on_par_curve(target, 0.05, yield_curve, market, spreads) - base) / BUMP
        assert buckets[index] == pytest.approx(expected, rel=1e-12, abs=1e-12)
    # a 4Y trade does not see quotes past the 5Y pillar
    np.testing.assert_allclose(buckets[3:], 0.0, atol=1e-12)
    assert buckets[2] > 0.0
    parallel = calculator.parallel_cs01(target, 0.05, yield_curve, market, PAR_SPREADS, CdsQuoteConvention.PAR_SPREAD)
    assert buckets.sum() == pytest.approx(parallel, rel=1e-2)


def test_points_upfront_quotes_are_bumped_through_quoted_spreads():
    calculator, yield_curve, market, target = _fixtures()
    converter = MarketQuoteConverter()
    upfront = converter.par_spreads_to_puf(market, 0.01, yield_curve, PAR_SPREADS)
    cs01 = calculator.parallel_cs01(target, 0.05, yield_curve, market, upfront, CdsQuoteConvention.POINTS_UPFRONT)

    builder = FastCreditCurveBuilder()
    pricer = AnalyticCdsPricer()
    coupons = [0.01] * len(market)
    bumped_upfront = [
        converter.quoted_spread_to_puf(cds, 0.01, yield_curve, converter.puf_to_quoted_spread(cds, 0.01, yield_curve, puf) + BUMP)
        for cds, puf in zip(market, upfront)
    ]
    base = pricer.pv(target, yield_curve, builder(market, coupons, upfront, yield_curve), 0.05)
    bumped = pricer.pv(target, yield_curve, builder(market, coupons, bumped_upfront, yield_curve), 0.05)
    assert cs01 == pytest.approx((bumped - base) / BUMP, rel=1e-10)
    assert cs01 > 0.0


def test_quoted_spread_bucketed_cs01_matches_manual_recalibration():
    calculator, yield_curve, market, target = _fixtures()
    converter = MarketQuoteConverter()
    quoted = converter.par_spreads_to_quoted_spreads(market, 0.01, yield_curve, PAR_SPREADS)
    buckets = calculator.bucketed_cs01(target, 0.05, yield_curve, market, quoted, CdsQuoteConvention.QUOTED_SPREAD)

    builder = FastCreditCurveBuilder()
    pricer = AnalyticCdsPricer()
    coupons = [0.01] * len(market)
    base = pricer.pv(target, yield_curve, builder(market, coupons, converter.quoted_spreads_to_puf(market, coupons, yield_curve, quoted), yield_curve), 0.05)
    bumped_quotes = list(quoted)
    bumped_quotes[1] += BUMP
    upfront = converter.quoted_spreads_to_puf(market, coupons, yield_curve, bumped_quotes)
    bumped = pricer.pv(target, yield_curve, builder(market, coupons, upfront, yield_curve), 0.05)
    assert buckets[1] == pytest.approx((bumped - base) / BUMP, rel=1e-10)


def test_single_node_cs01_is_convention_independent():
    calculator, yield_curve, market, target = _fixtures()
    single = market[2:3]
    par = calculator.parallel_cs01(target, 0.05, yield_curve, single, [0.011], CdsQuoteConvention.PAR_SPREAD)
    quoted = calculator.parallel_cs01(target, 0.05, yield_curve, single, [0.011], CdsQuoteConvention.QUOTED_SPREAD)
    assert quoted == pytest.approx(par, rel=1e-6)


def test_bucketed_cs01_from_credit_curve_stops_at_covering_bucket():
    calculator, yield_curve, market, target = _fixtures()
    credit_curve = IsdaCompliantCurve.of([2.0, 6.0], [0.015, 0.02])
    buckets = calculator.bucketed_cs01_from_credit_curve(target, 0.05, market, yield_curve, credit_curve)
    assert buckets.shape == (len(MATURITIES),)
    np.testing.assert_array_equal(buckets[3:], 0.0)
    implied = MarketQuoteConverter().par_spreads(market, yield_curve, credit_curve)
    expected = calculator.bucketed_cs01(target, 0.05, yield_curve, market, implied, CdsQuoteConvention.PAR_SPREAD)
    np.testing.assert_allclose(buckets[:3], expected[:3], rtol=1e-10)


def test_cs01_uses_the_calibrator_strategy():
    calibrator = IsdaCreditCurveCalibrator(arbitrage_handling=ArbitrageHandling.FAIL)
    calculator = SpreadSensitivityCalculator(calibrator)
    assert calculator.converter.builder is calibrator.strategy
    assert calculator.pricer is calibrator.pricer


def test_bad_inputs_rejected():
    calculator, yield_curve, market, target = _fixtures()
    with pytest.raises(CurveConfigurationError):
        calculator.parallel_cs01(target, 0.05, yield_curve, market, PAR_SPREADS, CdsQuoteConvention.PAR_SPREAD, 1e-12)
    with pytest.raises(CurveConfigurationError):
        calculator.bucketed_cs01(target, 0.05, yield_curve, market, PAR_SPREADS[:2], CdsQuoteConvention.PAR_SPREAD)
    with pytest.raises(CurveConfigurationError):
        calculator.bump_quote(market[0], 0.01, "CONVENTIONAL_SPREAD", yield_curve, BUMP)
    with pytest.raises(CurveConfigurationError):
        calculator.bucketed_cs01_from_credit_curve(target, 0.05, market[::-1], yield_curve, IsdaCompliantCurve.flat(0.02))
