import math
from typing import Optional

from .math_tools import MathTools


class WeightTrend:
    """Trend statistics over chronologically ordered body weight entries."""

    WINDOW = 7
    STABLE_BAND = 0.5
    MIN_WEEKLY_RATE = 0.1

    def __init__(self, weights: list[float]) -> None:
        self.weights = list(weights)

    def seven_day_average(self) -> float | None:
        recent = self.weights[-self.WINDOW:]
        if not recent:
            return None
        return MathTools.mean(recent)

    def weekly_change(self) -> float | None:
        """Difference between the last two 7-entry averages."""
        if len(self.weights) < 2 * self.WINDOW:
            return None
        recent = self.weights[-self.WINDOW:]
        previous = self.weights[-2 * self.WINDOW:-self.WINDOW]
        return MathTools.mean(recent) - MathTools.mean(previous)

    def direction(self) -> str:
        change = self.weekly_change()
        if change is None:
            return "stable"
        if change > self.STABLE_BAND:
            return "increasing"
        if change < -self.STABLE_BAND:
            return "decreasing"
        return "stable"

    def weeks_to_goal(self, goal_weight: float) -> Optional[int]:
        """Estimate whole weeks until ``goal_weight`` at the current rate.

        Returns ``None`` when the rate is negligible or heading away from
        the goal.
        """
        rate = self.weekly_change()
        if rate is None or abs(rate) <= self.MIN_WEEKLY_RATE:
            return None
        if not self.weights:
            return None
        difference = goal_weight - self.weights[-1]
        if (difference > 0 and rate < 0) or (difference < 0 and rate > 0):
            return None
        return int(math.ceil(abs(difference / rate)))

    def summary(self, goal_weight: float | None = None) -> dict:
        avg = self.seven_day_average()
        change = self.weekly_change()
        return {
            "entries": len(self.weights),
            "seven_day_average": round(avg, 2) if avg is not None else None,
            "weekly_change": round(change, 2) if change is not None else None,
            "direction": self.direction(),
            "weeks_to_goal": (
                self.weeks_to_goal(goal_weight) if goal_weight is not None else None
            ),
        }
