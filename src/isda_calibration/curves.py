"""Nodal curves for discounting and survival probabilities."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .metadata import CurveMetadata


class DiscountCurve:
    """Interface for deterministic curves expressed as ``exp(-r(t)·t)``."""

    knot_times: Sequence[float] = ()

    def rt(self, time: float) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def df(self, time: float) -> float:
        return math.exp(-self.rt(time))


@dataclass(slots=True)
class FlatDiscountCurve(DiscountCurve):
    """Flat continuously-compounded rate curve."""

    rate: float

    @property
    def knot_times(self) -> Tuple[float, ...]:
        return ()

    def rt(self, time: float) -> float:
        return self.rate * time

    def df(self, time: float) -> float:
        return float(np.exp(-self.rate * time))


@dataclass(frozen=True, slots=True, eq=False)
class IsdaCompliantCurve(DiscountCurve):
    """Curve defined by zero rates at knot times, linear in ``r·t``.

    Between knots the forward rate is constant. Before the first knot the
    zero rate is flat; beyond the last knot the last forward rate is
    extended. A credit curve uses the same representation, the zero rate
    being the average hazard rate and ``df`` the survival probability.
    """

    t: np.ndarray
    r: np.ndarray
    metadata: Optional[CurveMetadata] = None
    _rt: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        t = np.array(self.t, dtype=float).ravel()
        r = np.array(self.r, dtype=float).ravel()
        if t.size == 0:
            raise ValueError("Curve needs at least one knot")
        if t.size != r.size:
            raise ValueError("times and rates different lengths")
        if t[0] < 0.0:
            raise ValueError("first knot time must be >= 0")
        if np.any(np.diff(t) <= 0.0):
            raise ValueError("Knot times must be strictly increasing")
        rt = r * t
        for array in (t, r, rt):
            array.setflags(write=False)
        object.__setattr__(self, "t", t)
        object.__setattr__(self, "r", r)
        object.__setattr__(self, "_rt", rt)

    @classmethod
    def of(cls, times: Sequence[float], rates: Sequence[float], metadata: Optional[CurveMetadata] = None) -> "IsdaCompliantCurve":
        return cls(t=np.asarray(times, dtype=float), r=np.asarray(rates, dtype=float), metadata=metadata)

    @classmethod
    def from_rt(cls, times: Sequence[float], rt: Sequence[float], metadata: Optional[CurveMetadata] = None) -> "IsdaCompliantCurve":
        t = np.asarray(times, dtype=float)
        if np.any(t <= 0.0):
            raise ValueError("times must be > 0 when building from r·t values")
        return cls(t=t, r=np.asarray(rt, dtype=float) / t, metadata=metadata)

    @classmethod
    def flat(cls, rate: float, metadata: Optional[CurveMetadata] = None) -> "IsdaCompliantCurve":
        return cls.of([1.0], [rate], metadata)

    # ------------------------------------------------------------------
    @property
    def knot_times(self) -> Tuple[float, ...]:
        return tuple(float(x) for x in self.t)

    @property
    def zero_rates(self) -> np.ndarray:
        return self.r

    @property
    def parameter_count(self) -> int:
        return int(self.t.size)

    @property
    def name(self) -> Optional[str]:
        return self.metadata.curve_name if self.metadata is not None else None

    def parameter(self, index: int) -> float:
        return float(self.r[index])

    def time_at(self, index: int) -> float:
        return float(self.t[index])

    def rt_at(self, index: int) -> float:
        return float(self._rt[index])

    # ------------------------------------------------------------------
    def _interpolated_rt(self, time: float, index: int) -> float:
        t1 = self.t[index - 1]
        t2 = self.t[index]
        return float(((t2 - time) * self._rt[index - 1] + (time - t1) * self._rt[index]) / (t2 - t1))

    def rt(self, time: float) -> float:
        """Zero rate times time, i.e. minus the log discount factor."""
        t = self.t
        n = t.size
        if time <= t[0] or n == 1:
            return float(self.r[0] * time)
        if time > t[-1]:
            return self._interpolated_rt(time, n - 1)
        index = int(np.searchsorted(t, time))
        if t[index] == time:
            return float(self._rt[index])
        return self._interpolated_rt(time, index)

    def zero_rate(self, time: float) -> float:
        if time < 0.0:
            raise ValueError(f"require time >= 0, was {time}")
        if time <= self.t[0]:
            return float(self.r[0])
        return self.rt(time) / time

    def df(self, time: float) -> float:
        return math.exp(-self.rt(time))

    def forward_rate(self, time: float) -> float:
        """Instantaneous forward rate; at a knot the value just before it."""
        t = self.t
        n = t.size
        if time <= t[0] or n == 1:
            return float(self.r[0])
        index = n - 1 if time > t[-1] else int(np.searchsorted(t, time))
        return float((self._rt[index] - self._rt[index - 1]) / (t[index] - t[index - 1]))

    def forward_rates(self) -> np.ndarray:
        """Constant forward rate on each segment ending at a knot."""
        start = np.concatenate(([0.0], self.t[:-1]))
        start_rt = np.concatenate(([0.0], self._rt[:-1]))
        return (self._rt - start_rt) / (self.t - start)

    def rt_and_sensitivity(self, time: float, node_index: int) -> Tuple[float, float]:
        """``r·t`` at ``time`` and its derivative with respect to the zero rate at ``node_index``."""
        if time < 0.0:
            raise ValueError(f"require time >= 0, was {time}")
        t = self.t
        n = t.size
        if not 0 <= node_index < n:
            raise IndexError(f"node index {node_index} out of range")
        if n == 1 or time <= t[0]:
            return float(self.r[0] * time), (time if node_index == 0 else 0.0)

        if time > t[-1]:
            index = n - 1
        elif time == t[node_index]:
            return float(self._rt[node_index]), time
        elif node_index > 0 and t[node_index - 1] < time < t[node_index]:
            index = node_index
        else:
            index = int(np.searchsorted(t, time))
            if t[index] == time:
                return float(self._rt[index]), 0.0

        t1 = t[index - 1]
        t2 = t[index]
        dt = t2 - t1
        w1 = (t2 - time) / dt
        w2 = (time - t1) / dt
        rt = float(w1 * self._rt[index - 1] + w2 * self._rt[index])
        sense = 0.0
        if node_index == index:
            sense = float(t2 * w2)
        elif node_index == index - 1:
            sense = float(t1 * w1)
        return rt, sense

    # ------------------------------------------------------------------
    def with_parameter(self, index: int, rate: float) -> "IsdaCompliantCurve":
        if not 0 <= index < self.t.size:
            raise IndexError(f"index {index} out of range")
        rates = self.r.copy()
        rates[index] = rate
        return IsdaCompliantCurve(t=self.t, r=rates, metadata=self.metadata)

    def with_metadata(self, metadata: CurveMetadata) -> "IsdaCompliantCurve":
        return replace(self, metadata=metadata)

    def with_offset(self, offset: float) -> "IsdaCompliantCurve":
        """Re-anchor the curve to a base date ``offset`` years after its own.

        Seen from the new base, ``P'(T) = P(offset + T) / P(offset)``. Knots at or
        before a positive offset are dropped; an offset at or beyond the last
        knot leaves a flat curve at the last forward rate.
        """
        t = self.t
        r = self.r
        n = t.size
        if offset == 0.0:
            return self
        if offset < t[0]:
            eta = r[0] * offset
            return IsdaCompliantCurve.from_rt(t - offset, self._rt - eta, self.metadata)
        if offset >= t[-1]:
            if n == 1:
                return IsdaCompliantCurve.flat(float(r[0]), self.metadata)
            forward = (self._rt[-1] - self._rt[-2]) / (t[-1] - t[-2])
            return IsdaCompliantCurve.flat(float(forward), self.metadata)
        index = int(np.searchsorted(t, offset, side="right"))
        eta = (
            self._rt[index - 1] * (t[index] - offset) + self._rt[index] * (offset - t[index - 1])
        ) / (t[index] - t[index - 1])
        return IsdaCompliantCurve.from_rt(t[index:] - offset, self._rt[index:] - eta, self.metadata)


def build_from_zero_rates(pillars: Iterable[Tuple[float, float]]) -> IsdaCompliantCurve:
    data: List[Tuple[float, float]] = sorted((float(t), float(r)) for t, r in pillars)
    if not data:
        raise ValueError("Need at least one pillar")
    times = [t for t, _ in data]
    rates = [r for _, r in data]
    return IsdaCompliantCurve.of(times, rates)
