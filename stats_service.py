from __future__ import annotations
import datetime
import logging
from typing import Dict, List, Optional

import numpy as np

from algorithms.math_tools import MathTools
from algorithms.weight_converter import WeightConverter
from algorithms.weight_trend import WeightTrend
from db import (
    BodyWeightRepository,
    DailySummaryRepository,
    ProfileRepository,
    SettingsRepository,
)
from models import CorrelationData, CorrelationDataPoint

logger = logging.getLogger(__name__)


class StatisticsService:
    """Compute cross-metric statistics over the logged history."""

    def __init__(
        self,
        summary_repo: DailySummaryRepository,
        body_weight_repo: BodyWeightRepository | None = None,
        profile_repo: ProfileRepository | None = None,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.summaries = summary_repo
        self.body_weights = body_weight_repo
        self.profiles = profile_repo
        self.settings = settings_repo

    def _correlation_days(self) -> int:
        if self.settings is None:
            return 7
        return self.settings.get_int("correlation_days", 7)

    def correlation(
        self, days: int | None = None, today: datetime.date | None = None
    ) -> CorrelationData:
        """Return summaries dated on or after ``today - days`` as one series."""
        today = today or datetime.date.today()
        days = max(int(days if days is not None else self._correlation_days()), 0)
        start = today - datetime.timedelta(days=days)
        rows = self.summaries.fetch_range(start.isoformat(), None, descending=False)
        points = [
            CorrelationDataPoint(
                date=s.date,
                protein_intake=s.total_protein,
                calorie_intake=s.total_calories,
                workout_volume=s.total_workout_volume,
                recovery_score=s.recovery_score,
                sleep_hours=s.sleep_hours,
            )
            for s in rows
        ]
        return CorrelationData(start_date=start, end_date=today, data_points=points)

    @staticmethod
    def coefficients(data: CorrelationData) -> Dict[str, Optional[float]]:
        """Pearson coefficients of protein, sleep and volume against recovery."""
        points = data.data_points
        scores = [p.recovery_score for p in points]
        slept = [p for p in points if p.sleep_hours is not None]
        return {
            "protein_vs_recovery": MathTools.pearson(
                [p.protein_intake for p in points], scores
            ),
            "sleep_vs_recovery": MathTools.pearson(
                [p.sleep_hours for p in slept], [p.recovery_score for p in slept]
            ),
            "volume_vs_recovery": MathTools.pearson(
                [p.workout_volume for p in points], scores
            ),
        }

    def correlation_report(
        self, days: int | None = None, today: datetime.date | None = None
    ) -> dict:
        data = self.correlation(days, today)
        result = data.to_dict()
        result["coefficients"] = self.coefficients(data)
        return result

    def body_weight_history(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        unit: str = "lbs",
    ) -> List[Dict[str, float | str]]:
        if self.body_weights is None:
            return []
        rows = self.body_weights.fetch_history(start_date, end_date)
        result: List[Dict[str, float | str]] = []
        for rid, d, weight in rows:
            if unit == "kg":
                weight = WeightConverter.lb_to_kg(weight)
            result.append({"id": rid, "date": d, "weight": round(weight, 2)})
        return result

    def weight_stats(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        unit: str = "lbs",
    ) -> Dict[str, float]:
        history = self.body_weight_history(start_date, end_date, unit)
        if not history:
            return {"avg": 0.0, "min": 0.0, "max": 0.0}
        weights = [h["weight"] for h in history]
        return {
            "avg": round(sum(weights) / len(weights), 2),
            "min": min(weights),
            "max": max(weights),
        }

    def weight_trend(self, goal_weight: float | None = None) -> dict:
        """Summarize the body weight trend, using the profile goal by default."""
        if goal_weight is None and self.profiles is not None:
            goal_weight = self.profiles.fetch().goal_weight
        weights = [h["weight"] for h in self.body_weight_history()]
        result = WeightTrend(weights).summary(goal_weight)
        result["goal_weight"] = goal_weight
        return result

    def weight_forecast(self, days: int) -> List[Dict[str, float]]:
        """Return a linear body weight forecast for ``days`` ahead."""
        if days <= 0:
            return []
        weights = [h["weight"] for h in self.body_weight_history()]
        if len(weights) < 2:
            last = weights[-1] if weights else 0.0
            return [{"day": i, "weight": round(last, 2)} for i in range(1, days + 1)]
        times = np.arange(len(weights), dtype=float)
        # later entries weigh more
        slope, _ = np.polyfit(times, np.array(weights, dtype=float), 1, w=times + 1)
        last = weights[-1]
        return [
            {"day": i, "weight": round(last + float(slope) * i, 2)}
            for i in range(1, days + 1)
        ]
