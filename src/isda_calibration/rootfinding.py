"""One-dimensional root finders used by the curve builders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Tuple

from scipy.optimize import brentq

from .errors import RootFindingError

logger = logging.getLogger(__name__)

Func = Callable[[float], float]
FuncDeriv = Callable[[float], Tuple[float, float]]

NEWTON_MAX_ITER = 50
BRACKET_MAX_ITER = 50
BRACKET_FACTOR = 1.6


@dataclass(frozen=True, slots=True)
class RootResult:
    root: float
    iterations: int
    method: str


def newton_raphson(
    func_and_deriv: FuncDeriv,
    initial_guess: float,
    *,
    tol_value: float = 1e-12,
    tol_step: float = 1e-14,
    max_iter: int = NEWTON_MAX_ITER,
) -> RootResult:
    """Newton-Raphson iteration with an analytic derivative.

    Parameters
    ----------
    func_and_deriv:
        Callable returning ``(value, derivative)`` at a given point.
    initial_guess:
        Starting point for the iteration.
    tol_value:
        Absolute tolerance on the function value.
    tol_step:
        Absolute tolerance on successive updates.
    max_iter:
        Iteration bound; exceeding it is a fatal non-convergence.
    """
    x = float(initial_guess)
    for iteration in range(1, max_iter + 1):
        value, deriv = func_and_deriv(x)
        logger.debug("Newton iter %s: x=%s value=%s deriv=%s", iteration, x, value, deriv)
        if abs(value) <= tol_value:
            return RootResult(x, iteration, "newton")
        if deriv == 0.0:
            raise RootFindingError(f"Zero derivative at x={x} after {iteration} iterations")
        step = value / deriv
        x -= step
        if abs(step) <= tol_step * max(1.0, abs(x)):
            return RootResult(x, iteration, "newton")
    raise RootFindingError(f"Newton-Raphson failed to converge in {max_iter} iterations (last x={x})")


def bracket_root(
    func: Func,
    lower: float,
    upper: float,
    *,
    factor: float = BRACKET_FACTOR,
    max_iter: int = BRACKET_MAX_ITER,
) -> Tuple[float, float]:
    """Expand ``(lower, upper)`` geometrically until ``func`` changes sign."""
    if lower == upper:
        raise RootFindingError("Bracket needs two distinct points")
    a, b = (lower, upper) if lower < upper else (upper, lower)
    f_a = func(a)
    f_b = func(b)
    for _ in range(max_iter):
        if f_a * f_b <= 0.0:
            return a, b
        # grow on the side with the smaller absolute value
        if abs(f_a) < abs(f_b):
            a += factor * (a - b)
            f_a = func(a)
        else:
            b += factor * (b - a)
            f_b = func(b)
    raise RootFindingError(f"Failed to bracket a root (last interval [{a}, {b}])")


def initial_bracket(guess: float, width: float = 0.01) -> Tuple[float, float]:
    if guess > 0.0:
        return 0.8 * guess, 1.25 * guess
    return guess - width, guess + width


def bracketed_brent(
    func: Func,
    guess: float,
    *,
    tol: float = 1e-15,
    max_iter: int = 100,
) -> RootResult:
    """Bracket around a rough guess then solve with Brent's method."""
    lower, upper = bracket_root(func, *initial_bracket(guess))
    try:
        root, info = brentq(func, lower, upper, xtol=tol, maxiter=max_iter, full_output=True)
    except RuntimeError as exc:
        raise RootFindingError(str(exc)) from exc
    if not info.converged:
        raise RootFindingError(f"Brent failed to converge: {info.flag}")
    return RootResult(float(root), info.iterations, "brent")
