"""ISDA-compliant discount and credit curve calibration."""

from .bonds import BondHazardRateSolver
from .calibration import CdsIsdaCreditCurveNode, IsdaCreditCurveCalibrator, IsdaCreditCurveDefinition
from .curves import IsdaCompliantCurve
from .cs01 import ShiftType, SpreadSensitivityCalculator
from .discount import IsdaDiscountCurveCalibrator, IsdaDiscountCurveDefinition, IsdaDiscountCurveNode
from .errors import (
    ArbitrageError,
    CalibrationError,
    CurveConfigurationError,
    MarketDataRangeError,
    RootFindingError,
)
from .hazard import ArbitrageHandling, FastCreditCurveBuilder
from .hedging import HedgeRatioCalculator, solve_hedge_ratios
from .instruments import Bond, CdsInstrument, FixedFloatSwap, TermDeposit
from .market import (
    ConstantRecoveryRates,
    CreditRatesProvider,
    IsdaCreditDiscountFactors,
    IsdaDiscountFactors,
    LegalEntitySurvivalProbabilities,
    MarketData,
)
from .quotes import CdsQuoteConvention, MarketQuoteConverter
from .sensitivity import (
    CurrencyParameterSensitivities,
    CurrencyParameterSensitivity,
    MarketQuoteSensitivityCalculator,
)
from .valuation import AccrualOnDefaultFormula, AnalyticCdsPricer, PriceType

__all__ = [
    "AccrualOnDefaultFormula",
    "AnalyticCdsPricer",
    "ArbitrageError",
    "ArbitrageHandling",
    "Bond",
    "BondHazardRateSolver",
    "CalibrationError",
    "CdsInstrument",
    "CdsIsdaCreditCurveNode",
    "CdsQuoteConvention",
    "ConstantRecoveryRates",
    "CreditRatesProvider",
    "CurrencyParameterSensitivities",
    "CurrencyParameterSensitivity",
    "CurveConfigurationError",
    "FastCreditCurveBuilder",
    "FixedFloatSwap",
    "HedgeRatioCalculator",
    "IsdaCompliantCurve",
    "IsdaCreditCurveCalibrator",
    "IsdaCreditCurveDefinition",
    "IsdaCreditDiscountFactors",
    "IsdaDiscountCurveCalibrator",
    "IsdaDiscountCurveDefinition",
    "IsdaDiscountCurveNode",
    "IsdaDiscountFactors",
    "LegalEntitySurvivalProbabilities",
    "MarketData",
    "MarketDataRangeError",
    "MarketQuoteConverter",
    "MarketQuoteSensitivityCalculator",
    "PriceType",
    "RootFindingError",
    "ShiftType",
    "SpreadSensitivityCalculator",
    "TermDeposit",
    "solve_hedge_ratios",
]
