"""Curve-parameter sensitivities and their conversion to market-quote sensitivities."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .errors import CurveConfigurationError
from .market import CreditRatesProvider
from .metadata import ParameterMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class CurrencyParameterSensitivity:
    """Sensitivity of a value to each parameter of one named curve."""

    curve_name: str
    currency: str
    sensitivity: np.ndarray
    parameter_metadata: Tuple[ParameterMetadata, ...] = ()

    def __post_init__(self) -> None:
        values = np.array(self.sensitivity, dtype=float).ravel()
        values.setflags(write=False)
        object.__setattr__(self, "sensitivity", values)
        object.__setattr__(self, "parameter_metadata", tuple(self.parameter_metadata))

    @property
    def key(self) -> Tuple[str, str]:
        return self.curve_name, self.currency

    @property
    def parameter_count(self) -> int:
        return int(self.sensitivity.size)

    def plus(self, other: "CurrencyParameterSensitivity") -> "CurrencyParameterSensitivity":
        if other.key != self.key or other.parameter_count != self.parameter_count:
            raise ValueError(f"Cannot add sensitivity {other.key} to {self.key}")
        return CurrencyParameterSensitivity(
            self.curve_name, self.currency, self.sensitivity + other.sensitivity, self.parameter_metadata
        )


@dataclass(frozen=True, slots=True)
class CurrencyParameterSensitivities:
    """Collection of sensitivities, at most one per (curve name, currency)."""

    sensitivities: Tuple[CurrencyParameterSensitivity, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, sensitivities: Sequence[CurrencyParameterSensitivity]) -> "CurrencyParameterSensitivities":
        return cls.empty().combined_with(sensitivities)

    @classmethod
    def empty(cls) -> "CurrencyParameterSensitivities":
        return cls(())

    def __iter__(self) -> Iterator[CurrencyParameterSensitivity]:
        return iter(self.sensitivities)

    def __len__(self) -> int:
        return len(self.sensitivities)

    def find(self, curve_name: str, currency: str) -> Optional[CurrencyParameterSensitivity]:
        for sensitivity in self.sensitivities:
            if sensitivity.key == (curve_name, currency):
                return sensitivity
        return None

    def get(self, curve_name: str, currency: str) -> CurrencyParameterSensitivity:
        found = self.find(curve_name, currency)
        if found is None:
            raise KeyError(f"No sensitivity for {curve_name}/{currency}")
        return found

    def combined_with(self, others: Sequence[CurrencyParameterSensitivity]) -> "CurrencyParameterSensitivities":
        """Add ``others``, summing entries that share a curve and currency."""
        merged: Dict[Tuple[str, str], CurrencyParameterSensitivity] = {s.key: s for s in self.sensitivities}
        for other in others:
            existing = merged.get(other.key)
            merged[other.key] = other if existing is None else existing.plus(other)
        return CurrencyParameterSensitivities(tuple(merged.values()))


class MarketQuoteSensitivityCalculator:
    """Converts parameter sensitivities into market-quote sensitivities.

    Each block is multiplied by the calibration Jacobian stored on its curve
    and the result is split back onto the curves the Jacobian spans.
    """

    def sensitivity(
        self,
        parameter_sensitivities: CurrencyParameterSensitivities,
        provider: CreditRatesProvider,
    ) -> CurrencyParameterSensitivities:
        result: List[CurrencyParameterSensitivity] = []
        for block in parameter_sensitivities:
            curve = provider.find_curve(block.curve_name)
            if curve is None:
                raise CurveConfigurationError(f"Curve {block.curve_name} not found in provider")
            jacobian = curve.metadata.jacobian if curve.metadata is not None else None
            if jacobian is None:
                raise CurveConfigurationError(
                    f"Curve {block.curve_name} has no calibration Jacobian; calibrate with compute_jacobian=True"
                )
            if block.parameter_count != jacobian.jacobian_matrix.shape[0]:
                raise CurveConfigurationError(
                    f"Sensitivity of size {block.parameter_count} does not match Jacobian of curve {block.curve_name}"
                )
            quote_sensitivity = block.sensitivity @ jacobian.jacobian_matrix
            for entry, values in zip(jacobian.order, jacobian.split(quote_sensitivity)):
                logger.debug("Market quote sensitivity %s -> %s: %s", block.curve_name, entry.name, values)
                target = curve if entry.name == block.curve_name else provider.find_curve(entry.name)
                labels = target.metadata.parameter_metadata if target is not None and target.metadata else ()
                result.append(CurrencyParameterSensitivity(entry.name, block.currency, values, labels))
        return CurrencyParameterSensitivities.of(result)
