"""Credit curve calibration from a homogeneous set of CDS quotes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .curves import DiscountCurve, IsdaCompliantCurve
from .daycount import ACT_365F, DayCount
from .errors import CurveConfigurationError
from .hazard import ArbitrageHandling, CreditCurveStrategy, FastCreditCurveBuilder
from .instruments import CdsInstrument
from .market import CreditRatesProvider, IsdaCreditDiscountFactors, LegalEntitySurvivalProbabilities, MarketData
from .metadata import CurveMetadata, CurveParameterSize, JacobianCalibrationMatrix, ParameterMetadata
from .quotes import CdsQuoteConvention, MarketQuoteConverter, QuoteTriple
from .valuation import AccrualOnDefaultFormula, AnalyticCdsPricer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CdsIsdaCreditCurveNode:
    """A CDS node; ``instrument.coupon`` is the trade's fixed rate."""

    label: str
    observable_id: str
    legal_entity_id: str
    currency: str
    instrument: CdsInstrument
    quote_convention: CdsQuoteConvention = CdsQuoteConvention.PAR_SPREAD

    @property
    def fixed_rate(self) -> float:
        return self.instrument.coupon

    def resolve(self, recovery_rate: float) -> CdsInstrument:
        return self.instrument.with_recovery_rate(recovery_rate)


@dataclass(frozen=True, slots=True)
class IsdaCreditCurveDefinition:
    name: str
    currency: str
    valuation_date: date
    nodes: Tuple[CdsIsdaCreditCurveNode, ...]
    day_count: DayCount = ACT_365F
    compute_jacobian: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))


class IsdaCreditCurveCalibrator:
    """Builds survival probability curves for one legal entity and currency.

    The node solve is delegated to ``strategy``; quote conversion and the
    optional calibration Jacobian are handled here.
    """

    def __init__(
        self,
        strategy: Optional[CreditCurveStrategy] = None,
        *,
        arbitrage_handling: ArbitrageHandling = ArbitrageHandling.IGNORE,
        formula: AccrualOnDefaultFormula = AccrualOnDefaultFormula.ORIGINAL_ISDA,
    ) -> None:
        self.strategy = strategy if strategy is not None else FastCreditCurveBuilder(arbitrage_handling, formula)
        self.pricer = AnalyticCdsPricer(formula)
        self.converter = MarketQuoteConverter(self.strategy, self.pricer)

    @classmethod
    def standard(cls) -> "IsdaCreditCurveCalibrator":
        return cls()

    def calibrate(
        self,
        definition: IsdaCreditCurveDefinition,
        market_data: MarketData,
        rates_provider: CreditRatesProvider,
    ) -> LegalEntitySurvivalProbabilities:
        self._validate(definition, market_data, rates_provider)
        nodes = definition.nodes
        legal_entity_id = nodes[0].legal_entity_id
        convention = nodes[0].quote_convention
        discount_factors = rates_provider.discount_factors(definition.currency)
        recovery_rate = rates_provider.recovery_rates(legal_entity_id).recovery_rate_at(definition.valuation_date)
        yield_curve = discount_factors.curve

        instruments = [node.resolve(recovery_rate) for node in nodes]
        triples = [
            self.converter.standardise(cds, market_data.value(node.observable_id), convention, yield_curve)
            for cds, node in zip(instruments, nodes)
        ]
        metadata = CurveMetadata(
            curve_name=definition.name,
            day_count=definition.day_count.name,
            parameter_metadata=tuple(ParameterMetadata(node.label, cds.protection_end) for node, cds in zip(nodes, instruments)),
        )
        curve = self.strategy(
            instruments,
            [triple.coupon for triple in triples],
            [triple.points_upfront for triple in triples],
            yield_curve,
            metadata,
        )
        if definition.compute_jacobian:
            jacobian = self.jacobian(definition.name, instruments, triples, convention, yield_curve, curve)
            curve = curve.with_metadata(metadata.with_jacobian(jacobian))
        logger.info(
            "Calibrated credit curve %s for %s/%s with %d nodes",
            definition.name,
            legal_entity_id,
            definition.currency,
            curve.parameter_count,
        )
        return LegalEntitySurvivalProbabilities(
            legal_entity_id=legal_entity_id,
            survival_probabilities=IsdaCreditDiscountFactors(
                currency=definition.currency,
                valuation_date=definition.valuation_date,
                curve=curve,
                day_count=definition.day_count,
            ),
        )

    def jacobian(
        self,
        name: str,
        instruments: Sequence[CdsInstrument],
        triples: Sequence[QuoteTriple],
        convention: CdsQuoteConvention,
        yield_curve: DiscountCurve,
        curve: IsdaCompliantCurve,
    ) -> JacobianCalibrationMatrix:
        """Inverse of the quote-to-parameter sensitivity matrix."""
        rows: List[np.ndarray] = []
        for cds, triple in zip(instruments, triples):
            if convention is CdsQuoteConvention.PAR_SPREAD:
                rows.append(self.pricer.par_spread_sensitivities(cds, yield_curve, curve))
            else:
                rows.append(self.pricer.pv_sensitivities(cds, yield_curve, curve, triple.coupon))
        sensitivity = np.diag([triple.jacobian_scale for triple in triples]) @ np.vstack(rows)
        return JacobianCalibrationMatrix.of(
            [CurveParameterSize(name, curve.parameter_count)], np.linalg.inv(sensitivity)
        )

    def _validate(
        self,
        definition: IsdaCreditCurveDefinition,
        market_data: MarketData,
        rates_provider: CreditRatesProvider,
    ) -> None:
        nodes = definition.nodes
        if not nodes:
            raise CurveConfigurationError("Curve definition has no nodes")
        entities = {node.legal_entity_id for node in nodes}
        if len(entities) != 1:
            raise CurveConfigurationError(f"Nodes must share one legal entity, found {sorted(entities)}")
        currencies = {node.currency for node in nodes}
        if currencies != {definition.currency}:
            raise CurveConfigurationError(
                f"Node currencies {sorted(currencies)} do not match curve currency {definition.currency}"
            )
        conventions = {node.quote_convention for node in nodes}
        if len(conventions) != 1:
            raise CurveConfigurationError(
                f"Nodes must share one quote convention, found {sorted(c.name for c in conventions)}"
            )
        discount_factors = rates_provider.discount_factors(definition.currency)
        if discount_factors.day_count != definition.day_count:
            raise CurveConfigurationError(
                f"Discount curve day count {discount_factors.day_count} differs from {definition.day_count}"
            )
        if not rates_provider.valuation_date == market_data.valuation_date == definition.valuation_date:
            raise CurveConfigurationError(
                "Valuation dates differ: provider {}, market data {}, curve definition {}".format(
                    rates_provider.valuation_date, market_data.valuation_date, definition.valuation_date
                )
            )
