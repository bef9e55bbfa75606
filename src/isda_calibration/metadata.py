"""Curve and parameter metadata, including the calibration Jacobian."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True, slots=True)
class ParameterMetadata:
    """Describes one curve parameter, typically the node it was calibrated from."""

    label: str
    time: float


@dataclass(frozen=True, slots=True)
class CurveParameterSize:
    name: str
    parameter_count: int


@dataclass(frozen=True, slots=True, eq=False)
class JacobianCalibrationMatrix:
    """Maps market-quote perturbations to curve-parameter perturbations.

    ``jacobian_matrix[i, j]`` is the sensitivity of parameter ``i`` of the owning
    curve to quote ``j``. ``order`` lists the curves, and their parameter counts,
    that the columns span; a curve built on top of others has more columns
    than rows.
    """

    order: Tuple[CurveParameterSize, ...]
    jacobian_matrix: np.ndarray

    def __post_init__(self) -> None:
        matrix = np.array(self.jacobian_matrix, dtype=float)
        if matrix.ndim != 2:
            raise ValueError("Jacobian must be a two dimensional matrix")
        if self.total_parameter_count != matrix.shape[1]:
            raise ValueError(
                f"Jacobian has {matrix.shape[1]} columns but order spans {self.total_parameter_count} parameters"
            )
        matrix.setflags(write=False)
        object.__setattr__(self, "order", tuple(self.order))
        object.__setattr__(self, "jacobian_matrix", matrix)

    @classmethod
    def of(cls, order: Sequence[CurveParameterSize], jacobian_matrix) -> "JacobianCalibrationMatrix":
        return cls(order=tuple(order), jacobian_matrix=np.asarray(jacobian_matrix, dtype=float))

    @property
    def total_parameter_count(self) -> int:
        return sum(entry.parameter_count for entry in self.order)

    def split(self, array: Sequence[float]) -> List[np.ndarray]:
        """Split an array spanning all curves into one block per curve."""
        values = np.asarray(array, dtype=float)
        if values.size != self.total_parameter_count:
            raise ValueError(
                f"Array of size {values.size} cannot be split over {self.total_parameter_count} parameters"
            )
        blocks: List[np.ndarray] = []
        start = 0
        for entry in self.order:
            blocks.append(values[start:start + entry.parameter_count])
            start += entry.parameter_count
        return blocks


@dataclass(frozen=True, slots=True)
class CurveMetadata:
    curve_name: str
    day_count: str = "ACT/365F"
    parameter_metadata: Tuple[ParameterMetadata, ...] = field(default_factory=tuple)
    jacobian: Optional[JacobianCalibrationMatrix] = None

    def with_jacobian(self, jacobian: JacobianCalibrationMatrix) -> "CurveMetadata":
        return replace(self, jacobian=jacobian)

    def with_parameter_metadata(self, parameter_metadata: Sequence[ParameterMetadata]) -> "CurveMetadata":
        return replace(self, parameter_metadata=tuple(parameter_metadata))
