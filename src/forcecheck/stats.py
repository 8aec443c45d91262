"""Running error statistics and the relative-error metric used by comparisons."""

from __future__ import annotations

import math
from dataclasses import dataclass


def relative_error(computed: float, reference: float) -> float:
    """Return ``|a - b| / min(|a|, |b|)``, falling back to ``|a - b|`` at zero.

    Identical values always give exactly zero regardless of magnitude.
    """

    diff = abs(float(computed) - float(reference))
    div = min(abs(float(computed)), abs(float(reference)))
    if div == 0.0:
        return diff
    return diff / div


@dataclass(frozen=True)
class ErrorSummary:
    """Immutable snapshot of an :class:`ErrorAccumulator`."""

    count: int
    average: float
    stddev: float
    max: float
    argmax: int

    def format(self) -> str:
        return (
            f"Average: {self.average:10.3e} StdDev: {self.stddev:10.3e} "
            f"MaxErr: {self.max:10.3e} @ item: {self.argmax}"
        )


class ErrorAccumulator:
    """Streaming count/sum/sum-of-squares/max over non-negative errors.

    The position of the maximum is 1-based and counted from the last
    :meth:`reset`; it is ``-1`` while the accumulator is empty and ties keep
    the earliest position.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._count = 0
        self._sum = 0.0
        self._sumsq = 0.0
        self._max = 0.0
        self._argmax = -1

    def add(self, value: float) -> None:
        value = float(value)
        self._count += 1
        if self._argmax < 0 or value > self._max:
            self._max = value
            self._argmax = self._count
        self._sum += value
        self._sumsq += value * value

    @property
    def count(self) -> int:
        return self._count

    def average(self) -> float:
        if self._count == 0:
            return 0.0
        return self._sum / self._count

    def stddev(self) -> float:
        if self._count == 0:
            return 0.0
        mean = self._sum / self._count
        variance = self._sumsq / self._count - mean * mean
        # rounding can push a zero variance slightly negative
        return math.sqrt(max(variance, 0.0))

    def max(self) -> float:
        return self._max

    def argmax(self) -> int:
        return self._argmax

    def summary(self) -> ErrorSummary:
        return ErrorSummary(
            count=self._count,
            average=self.average(),
            stddev=self.stddev(),
            max=self._max,
            argmax=self._argmax,
        )

    def __str__(self) -> str:
        return self.summary().format()


__all__ = ["ErrorAccumulator", "ErrorSummary", "relative_error"]
