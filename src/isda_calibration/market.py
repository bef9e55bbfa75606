"""Date-aware views over calibrated curves and the providers holding them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Mapping, Optional, Tuple

from .curves import IsdaCompliantCurve
from .daycount import ACT_365F, DayCount
from .errors import CurveConfigurationError
from .metadata import CurveMetadata


@dataclass(frozen=True, slots=True)
class IsdaDiscountFactors:
    """Discount factors ``exp(-r(t)·t)`` with ``t`` measured from the valuation date."""

    currency: str
    valuation_date: date
    curve: IsdaCompliantCurve
    day_count: DayCount = ACT_365F

    def relative_year_fraction(self, target: date) -> float:
        return self.day_count.relative_year_fraction(self.valuation_date, target)

    def discount_factor(self, target: date) -> float:
        return self.curve.df(self.relative_year_fraction(target))

    def zero_rate(self, target: date) -> float:
        return self.curve.zero_rate(max(self.relative_year_fraction(target), 0.0))

    @property
    def metadata(self) -> Optional[CurveMetadata]:
        return self.curve.metadata

    @property
    def parameter_count(self) -> int:
        return self.curve.parameter_count

    def parameter(self, index: int) -> float:
        return self.curve.parameter(index)

    def with_parameter(self, index: int, value: float) -> "IsdaDiscountFactors":
        return replace(self, curve=self.curve.with_parameter(index, value))


@dataclass(frozen=True, slots=True)
class IsdaCreditDiscountFactors(IsdaDiscountFactors):
    """Survival probabilities ``Q(t) = exp(-h(t)·t)``; same structure as discounting."""

    def survival_probability(self, target: date) -> float:
        return self.discount_factor(target)


@dataclass(frozen=True, slots=True)
class LegalEntitySurvivalProbabilities:
    legal_entity_id: str
    survival_probabilities: IsdaCreditDiscountFactors

    @property
    def currency(self) -> str:
        return self.survival_probabilities.currency

    @property
    def curve(self) -> IsdaCompliantCurve:
        return self.survival_probabilities.curve

    def survival_probability(self, target: date) -> float:
        return self.survival_probabilities.survival_probability(target)


@dataclass(frozen=True, slots=True)
class ConstantRecoveryRates:
    legal_entity_id: str
    valuation_date: date
    recovery_rate: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.recovery_rate <= 1.0:
            raise ValueError(f"recovery rate must be in [0, 1], was {self.recovery_rate}")

    def recovery_rate_at(self, target: date) -> float:
        return self.recovery_rate


@dataclass(frozen=True, slots=True)
class MarketData:
    """Market quotes keyed by observable id."""

    valuation_date: date
    values: Mapping[str, float] = field(default_factory=dict)

    def value(self, observable_id: str) -> float:
        try:
            return float(self.values[observable_id])
        except KeyError as exc:
            raise CurveConfigurationError(f"No market quote for '{observable_id}'") from exc


@dataclass(frozen=True, slots=True)
class CreditRatesProvider:
    """Immutable snapshot of discount curves, credit curves and recovery rates."""

    valuation_date: date
    discount_curves: Mapping[str, IsdaDiscountFactors] = field(default_factory=dict)
    credit_curves: Mapping[Tuple[str, str], LegalEntitySurvivalProbabilities] = field(default_factory=dict)
    recovery_rate_curves: Mapping[str, ConstantRecoveryRates] = field(default_factory=dict)

    def discount_factors(self, currency: str) -> IsdaDiscountFactors:
        try:
            return self.discount_curves[currency]
        except KeyError as exc:
            raise CurveConfigurationError(f"No discount curve for currency {currency}") from exc

    def survival_probabilities(self, legal_entity_id: str, currency: str) -> LegalEntitySurvivalProbabilities:
        try:
            return self.credit_curves[(legal_entity_id, currency)]
        except KeyError as exc:
            raise CurveConfigurationError(f"No credit curve for {legal_entity_id}/{currency}") from exc

    def recovery_rates(self, legal_entity_id: str) -> ConstantRecoveryRates:
        try:
            return self.recovery_rate_curves[legal_entity_id]
        except KeyError as exc:
            raise CurveConfigurationError(f"No recovery rate for {legal_entity_id}") from exc

    def with_discount_curve(self, discount_factors: IsdaDiscountFactors) -> "CreditRatesProvider":
        curves: Dict[str, IsdaDiscountFactors] = dict(self.discount_curves)
        curves[discount_factors.currency] = discount_factors
        return replace(self, discount_curves=curves)

    def with_credit_curve(self, credit_curve: LegalEntitySurvivalProbabilities) -> "CreditRatesProvider":
        curves = dict(self.credit_curves)
        curves[(credit_curve.legal_entity_id, credit_curve.currency)] = credit_curve
        return replace(self, credit_curves=curves)

    def with_recovery_rates(self, recovery_rates: ConstantRecoveryRates) -> "CreditRatesProvider":
        rates = dict(self.recovery_rate_curves)
        rates[recovery_rates.legal_entity_id] = recovery_rates
        return replace(self, recovery_rate_curves=rates)

    def find_curve(self, curve_name: str) -> Optional[IsdaCompliantCurve]:
        """Look up a discount or credit curve by its metadata name."""
        for discount_factors in self.discount_curves.values():
            if discount_factors.curve.name == curve_name:
                return discount_factors.curve
        for credit_curve in self.credit_curves.values():
            if credit_curve.curve.name == curve_name:
                return credit_curve.curve
        return None
