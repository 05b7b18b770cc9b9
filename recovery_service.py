from __future__ import annotations
import datetime
import logging

from algorithms.math_tools import MathTools
from db import DailySummaryRepository, ProfileRepository, StoreError, WorkoutRepository
from models import AdjustmentReason, MacroAdjustment, UserProfile

logger = logging.getLogger(__name__)

SLEEP_WEIGHT = 0.4
PROTEIN_WEIGHT = 0.35
REST_WEIGHT = 0.25
MISSING_FACTOR = 50.0

BUFFER_THRESHOLD = 0.8
MAX_CARB_BOOST = 40.0
MAX_PROTEIN_BOOST = 20.0


def recovery_score(
    profile: UserProfile,
    sleep_hours: float | None,
    protein_grams: float | None,
    last_workout_date: datetime.date | None,
    today: datetime.date,
) -> float:
    """Return the 0-100 recovery score.

    Missing sleep or protein data counts as an average 50 for that factor.
    Without a previous workout the rest factor is full.
    """
    if sleep_hours is not None:
        sleep_factor = MathTools.capped_ratio(sleep_hours, profile.sleep_goal_hours) * 100
    else:
        sleep_factor = MISSING_FACTOR

    if protein_grams is not None:
        protein_factor = MathTools.capped_ratio(protein_grams, profile.target_protein) * 100
    else:
        protein_factor = MISSING_FACTOR

    if last_workout_date is None:
        rest_factor = 100.0
    else:
        rest_factor = 100.0 if (today - last_workout_date).days >= 1 else 50.0

    return (
        sleep_factor * SLEEP_WEIGHT
        + protein_factor * PROTEIN_WEIGHT
        + rest_factor * REST_WEIGHT
    )


def volume_percentile(volume: float, history: list[float]) -> float:
    """Fraction of ``history`` volumes strictly below ``volume``."""
    return MathTools.percentile_rank(volume, history)


def recovery_buffer(percentile: float) -> MacroAdjustment:
    """Extra carbs and protein after a workout above the 80th percentile."""
    if percentile > BUFFER_THRESHOLD:
        scale = (percentile - BUFFER_THRESHOLD) / (1.0 - BUFFER_THRESHOLD)
        return MacroAdjustment(
            carbs=MAX_CARB_BOOST * scale,
            protein=MAX_PROTEIN_BOOST * scale,
            fat=0.0,
            reason=AdjustmentReason.HIGH_VOLUME_RECOVERY,
        )
    return MacroAdjustment.NONE


class RecoveryService:
    """Compute and store recovery scores and post-workout macro buffers."""

    def __init__(
        self,
        summary_repo: DailySummaryRepository,
        workout_repo: WorkoutRepository,
        profile_repo: ProfileRepository,
    ) -> None:
        self.summaries = summary_repo
        self.workouts = workout_repo
        self.profiles = profile_repo

    def score_for_day(
        self, day: datetime.date | None = None, profile: UserProfile | None = None
    ) -> float | None:
        """Score ``day`` from its summary and write the result back.

        Returns ``None`` when no summary exists for the day.
        """
        day = day or datetime.date.today()
        summary = self.summaries.fetch(day.isoformat())
        if summary is None:
            return None
        profile = profile or self.profiles.fetch()
        last_workout = self.workouts.last_completed_on_or_before(day.isoformat())
        score = recovery_score(
            profile,
            summary.sleep_hours,
            summary.total_protein,
            last_workout,
            day,
        )
        self.summaries.set_recovery_score(day.isoformat(), score)
        logger.debug("recovery score for %s: %.2f", day, score)
        return score

    def percentile_for_workout(self, workout_id: int) -> float:
        workout = self.workouts.fetch_workout(workout_id)
        try:
            history = self.workouts.completed_volumes()
        except StoreError as e:
            logger.warning("volume history unavailable: %s", e)
            return 0.5
        return volume_percentile(workout.total_volume, history)

    def buffer_for_workout(self, workout_id: int) -> MacroAdjustment:
        return recovery_buffer(self.percentile_for_workout(workout_id))
