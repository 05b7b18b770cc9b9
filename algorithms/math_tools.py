import math
from typing import Iterable, Optional, Sequence
import numpy as np


class MathTools:
    """Provides the numeric helpers shared by the insight services."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight.

        Negative weights and non-positive reps contribute nothing.
        """
        vol = 0.0
        for reps, weight in sets:
            if reps <= 0 or weight <= 0:
                continue
            vol += reps * weight
        return vol

    @staticmethod
    def mean(values: Iterable[float], default: float = 0.0) -> float:
        """Return the arithmetic mean of ``values`` or ``default`` when empty."""
        data = [float(v) for v in values]
        if not data:
            return default
        return sum(data) / len(data)

    @staticmethod
    def capped_ratio(value: float, target: float) -> float:
        """Return ``value / target`` capped at 1.0 and floored at 0.0.

        A non-positive target counts as already met.
        """
        if target <= 0:
            return 1.0
        return MathTools.clamp(value / target, 0.0, 1.0)

    @staticmethod
    def percentile_rank(value: float, population: Sequence[float]) -> float:
        """Return the fraction of ``population`` strictly below ``value``.

        An empty population yields the neutral 0.5.
        """
        if not population:
            return 0.5
        lower = sum(1 for v in population if v < value)
        return lower / len(population)

    @staticmethod
    def pearson(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
        """Return the Pearson correlation of two equally long series.

        ``None`` is returned for fewer than three pairs or a constant series.
        """
        if len(xs) != len(ys):
            raise ValueError("series must have the same length")
        if len(xs) < 3:
            return None
        x = np.array(xs, dtype=float)
        y = np.array(ys, dtype=float)
        if float(np.std(x)) == 0.0 or float(np.std(y)) == 0.0:
            return None
        coeff = float(np.corrcoef(x, y)[0, 1])
        if math.isnan(coeff):
            return None
        return round(coeff, 4)
