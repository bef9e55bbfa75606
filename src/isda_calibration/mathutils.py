"""Numerically stable helpers for exponential integrals."""

from __future__ import annotations

import math

_TAYLOR_THRESHOLD = 1e-3


def epsilon(x: float) -> float:
    """Return ``(exp(x) - 1) / x`` with a Taylor expansion near zero."""
    if abs(x) > _TAYLOR_THRESHOLD:
        return math.expm1(x) / x
    return 1.0 + x * (1.0 / 2.0 + x * (1.0 / 6.0 + x * (1.0 / 24.0 + x / 120.0)))


def epsilon_p(x: float) -> float:
    """First derivative of :func:`epsilon`."""
    if abs(x) > _TAYLOR_THRESHOLD:
        return (x * math.exp(x) - math.expm1(x)) / (x * x)
    return 1.0 / 2.0 + x * (1.0 / 3.0 + x * (1.0 / 8.0 + x * (1.0 / 30.0 + x / 144.0)))
