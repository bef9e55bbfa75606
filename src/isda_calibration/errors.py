"""Exceptions raised by curve calibration."""

from __future__ import annotations


class CalibrationError(Exception):
    """Base class for calibration failures."""


class CurveConfigurationError(CalibrationError, ValueError):
    """Inconsistent curve definition, nodes or providers."""


class MarketDataRangeError(CalibrationError, ValueError):
    """Market quote outside the range the model can reproduce."""


class RootFindingError(CalibrationError, RuntimeError):
    """Raised when root-finding fails to bracket or converge."""


class ArbitrageError(CalibrationError):
    """Negative forward hazard rate under the FAIL arbitrage policy."""

    def __init__(self, node_index: int, forward_hazard: float) -> None:
        super().__init__(
            f"Negative forward hazard rate {forward_hazard:.6g} at node {node_index}"
        )
        self.node_index = node_index
        self.forward_hazard = forward_hazard
