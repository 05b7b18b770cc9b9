"""Rule-based suggestions built from recent nutrition, sleep and training data.

Every rule is a plain function ``(UserProfile, SuggestionWindow) -> Suggestion | None``.
The window fetches each data source at most once per invocation so all
rules see the same snapshot. A source that fails to load only silences
the rules that read it.
"""

from __future__ import annotations
import datetime
import logging
import random
from typing import Callable, Dict, List, Optional

from algorithms.math_tools import MathTools
from db import (
    DailySummaryRepository,
    ProfileRepository,
    SetRepository,
    SettingsRepository,
    StoreError,
    WorkoutRepository,
)
from models import (
    DailySummary,
    Suggestion,
    SuggestionCategory,
    SuggestionPriority,
    UserProfile,
    Workout,
    WorkoutSet,
)

logger = logging.getLogger(__name__)

PLATEAU_DEFICIT_KCAL = 300
PROTEIN_PER_LB = 0.7
SLEEP_RATIO = 0.7
OVERLOAD_MUSCLE_GROUP = "quads"
OVERLOAD_VOLUME = 1000
PROGRESSION_LOOKBACK_DAYS = 14
PROGRESSION_MIN_REPS = 8
PROGRESSION_INCREMENT = 5
DELOAD_LOOKBACK_DAYS = 28
DELOAD_MIN_WEEKS = 4
DELOAD_MIN_WORKOUTS_PER_WEEK = 4
DELOAD_VOLUME_RATIO = 0.9
CARB_TIMING_VOLUME = 5000
CARB_TIMING_RATIO = 0.8
CREATINE_LOOKBACK_DAYS = 30
CREATINE_MIN_WORKOUTS = 12
CREATINE_ODDS = 10


class SuggestionWindow:
    """Snapshot of the history the rules inspect for one invocation."""

    def __init__(
        self,
        today: datetime.date,
        days: int,
        summary_repo: DailySummaryRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        rng: random.Random | None = None,
    ) -> None:
        self.today = today
        self.days = max(int(days), 1)
        self._summary_repo = summary_repo
        self._workout_repo = workout_repo
        self._set_repo = set_repo
        self.rng = rng or random.Random()
        self._cache: Dict[str, object] = {}

    def _load(self, key: str, loader: Callable[[], object]):
        if key not in self._cache:
            try:
                self._cache[key] = loader()
            except StoreError as e:
                logger.warning("failed to load %s: %s", key, e)
                self._cache[key] = e
        value = self._cache[key]
        if isinstance(value, StoreError):
            raise value
        return value

    def _since(self, days: int) -> str:
        return (self.today - datetime.timedelta(days=days)).isoformat()

    @property
    def summaries(self) -> List[DailySummary]:
        """Daily summaries in the window, most recent first."""
        start = self.today - datetime.timedelta(days=self.days - 1)
        return self._load(
            "summaries",
            lambda: self._summary_repo.fetch_range(
                start.isoformat(), self.today.isoformat(), descending=True
            ),
        )

    def completed_workouts(self, days: int) -> List[Workout]:
        """Completed workouts dated within the last ``days`` days, most recent first."""
        return self._load(
            f"workouts:{days}",
            lambda: self._workout_repo.fetch_workouts(
                self._since(days), self.today.isoformat(), completed_only=True
            ),
        )

    def recent_sets(self, days: int) -> List[WorkoutSet]:
        """Sets logged within the last ``days`` days, most recent first."""
        end = (self.today + datetime.timedelta(days=1)).isoformat()
        return self._load(
            f"sets:{days}",
            lambda: self._set_repo.fetch_range(self._since(days), end, descending=True),
        )


Rule = Callable[[UserProfile, SuggestionWindow], Optional[Suggestion]]


def check_strength_plateau(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    summaries = window.summaries
    volumes = [s.total_workout_volume for s in summaries if s.total_workout_volume > 0]
    if len(volumes) < 3:
        return None
    recent_avg = sum(volumes[:3]) / 3.0
    older = volumes[3:6]
    older_avg = sum(older) / max(3.0, float(len(older)))
    if recent_avg > older_avg:
        return None
    avg_calories = sum(s.total_calories for s in summaries) / len(summaries)
    deficit = profile.target_calories - avg_calories
    if deficit <= PLATEAU_DEFICIT_KCAL:
        return None
    return Suggestion(
        category=SuggestionCategory.NUTRITION,
        priority=SuggestionPriority.HIGH,
        title="Strength Plateau Detected",
        message=(
            f"Your strength is plateauing, but you are in a {int(deficit)}-calorie "
            "deficit. Consider increasing carbs by 40g on training days."
        ),
        actionable=True,
    )


def check_protein_intake(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    if profile.body_weight is None:
        return None
    summaries = window.summaries
    if not summaries:
        return None
    avg_protein = MathTools.mean(s.total_protein for s in summaries)
    min_protein = profile.body_weight * PROTEIN_PER_LB
    if avg_protein >= min_protein:
        return None
    return Suggestion(
        category=SuggestionCategory.NUTRITION,
        priority=SuggestionPriority.MEDIUM,
        title="Low Protein Intake",
        message=(
            "Protein intake below optimal for muscle synthesis. "
            f"Target at least {int(min_protein)}g daily."
        ),
        actionable=True,
    )


def check_sleep_recovery(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    summaries = window.summaries
    if not summaries or summaries[0].sleep_hours is None:
        return None
    sleep_hours = summaries[0].sleep_hours
    if profile.sleep_goal_hours <= 0:
        return None
    if sleep_hours / profile.sleep_goal_hours >= SLEEP_RATIO:
        return None
    return Suggestion(
        category=SuggestionCategory.RECOVERY,
        priority=SuggestionPriority.HIGH,
        title="Low Sleep Detected",
        message=(
            "Recovery Alert: Consider 10% volume reduction for safety. "
            f"Sleep: {sleep_hours:.1f}hrs (goal: {profile.sleep_goal_hours:.1f}hrs)"
        ),
        actionable=True,
    )


def check_muscle_group_recovery(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    for workout in window.completed_workouts(1):
        volume = workout.volume_by_muscle_group().get(OVERLOAD_MUSCLE_GROUP, 0.0)
        if volume > OVERLOAD_VOLUME:
            return Suggestion(
                category=SuggestionCategory.WORKOUT,
                priority=SuggestionPriority.LOW,
                title="Leg Recovery in Progress",
                message=(
                    "You had high leg volume yesterday. "
                    "Upper body work recommended today."
                ),
                actionable=False,
            )
    return None


def check_progressive_overload(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    by_exercise: Dict[str, List[WorkoutSet]] = {}
    for s in window.recent_sets(PROGRESSION_LOOKBACK_DAYS):
        by_exercise.setdefault(s.exercise.strip().casefold(), []).append(s)
    for sets in by_exercise.values():
        if len(sets) < 3:
            continue
        recent_three = sets[:3]
        if not all(s.reps >= PROGRESSION_MIN_REPS for s in recent_three):
            continue
        if len({s.weight for s in recent_three}) != 1:
            continue
        suggested = recent_three[0].weight + PROGRESSION_INCREMENT
        name = recent_three[0].exercise.strip()
        return Suggestion(
            category=SuggestionCategory.WORKOUT,
            priority=SuggestionPriority.MEDIUM,
            title="Time to Progress!",
            message=(
                f"You've hit 8+ reps on {name} three sessions in a row. "
                f"Try {int(suggested)} lbs next time."
            ),
            actionable=True,
        )
    return None


def check_deload(profile: UserProfile, window: SuggestionWindow) -> Suggestion | None:
    workouts = window.completed_workouts(DELOAD_LOOKBACK_DAYS)
    weekly: Dict[tuple[int, int], int] = {}
    for w in workouts:
        week = tuple(w.date.isocalendar()[:2])
        weekly[week] = weekly.get(week, 0) + 1
    busy_weeks = sum(1 for count in weekly.values() if count >= DELOAD_MIN_WORKOUTS_PER_WEEK)
    if busy_weeks < DELOAD_MIN_WEEKS:
        return None
    volumes = [w.total_volume for w in workouts]
    if len(volumes) < 4:
        return None
    recent_avg = sum(volumes[:2]) / 2.0
    oldest_avg = sum(volumes[-2:]) / 2.0
    if recent_avg >= oldest_avg * DELOAD_VOLUME_RATIO:
        return None
    return Suggestion(
        category=SuggestionCategory.RECOVERY,
        priority=SuggestionPriority.HIGH,
        title="Deload Week Recommended",
        message=(
            "You've trained hard for 4+ weeks and performance is declining. "
            "Consider a deload week with 50% volume to optimize recovery."
        ),
        actionable=True,
    )


def check_carb_timing(
    profile: UserProfile, window: SuggestionWindow
) -> Suggestion | None:
    summaries = window.summaries
    if not summaries or summaries[0].date != window.today:
        return None
    today = summaries[0]
    target = profile.target_carbs
    if today.total_workout_volume <= CARB_TIMING_VOLUME:
        return None
    if today.total_carbs >= target * CARB_TIMING_RATIO:
        return None
    extra = int((target - today.total_carbs) * 0.5)
    return Suggestion(
        category=SuggestionCategory.NUTRITION,
        priority=SuggestionPriority.MEDIUM,
        title="Fuel Your Training",
        message=(
            "High volume workout today but carbs are low. "
            f"Consider adding {extra}g carbs pre/post workout for better performance."
        ),
        actionable=True,
    )


def check_creatine(profile: UserProfile, window: SuggestionWindow) -> Suggestion | None:
    # TODO: swap the random draw for a hash of the date if suggestions must be reproducible
    if len(window.completed_workouts(CREATINE_LOOKBACK_DAYS)) < CREATINE_MIN_WORKOUTS:
        return None
    if window.rng.randrange(CREATINE_ODDS) != 0:
        return None
    return Suggestion(
        category=SuggestionCategory.GENERAL,
        priority=SuggestionPriority.LOW,
        title="Consider Creatine",
        message=(
            "You're training consistently! Creatine monohydrate (5g/day) is one of "
            "the most researched and effective supplements for strength and muscle gains."
        ),
        actionable=False,
    )


RULES: tuple[Rule, ...] = (
    check_strength_plateau,
    check_protein_intake,
    check_sleep_recovery,
    check_muscle_group_recovery,
    check_progressive_overload,
    check_deload,
    check_carb_timing,
    check_creatine,
)


def evaluate_rules(
    profile: UserProfile,
    window: SuggestionWindow,
    rules: tuple[Rule, ...] = RULES,
) -> List[Suggestion]:
    """Run ``rules`` in order and collect their non-empty results."""
    suggestions: List[Suggestion] = []
    for rule in rules:
        try:
            result = rule(profile, window)
        except StoreError:
            logger.warning("rule %s skipped: history unavailable", rule.__name__)
            continue
        if result is not None:
            logger.debug("rule %s produced %r", rule.__name__, result.title)
            suggestions.append(result)
    return suggestions


def sort_by_priority(suggestions: List[Suggestion]) -> List[Suggestion]:
    """Return ``suggestions`` ordered high to low priority, stable within a level."""
    return sorted(suggestions, key=lambda s: -s.priority.rank)


class SuggestionService:
    """Generate suggestions from the stored history."""

    def __init__(
        self,
        summary_repo: DailySummaryRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        profile_repo: ProfileRepository,
        settings_repo: SettingsRepository | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.summaries = summary_repo
        self.workouts = workout_repo
        self.sets = set_repo
        self.profiles = profile_repo
        self.settings = settings_repo
        self.rng = rng

    def _window_days(self) -> int:
        if self.settings is None:
            return 7
        return self.settings.get_int("suggestion_window_days", 7)

    def window(
        self, today: datetime.date | None = None, days: int | None = None
    ) -> SuggestionWindow:
        return SuggestionWindow(
            today or datetime.date.today(),
            days if days is not None else self._window_days(),
            self.summaries,
            self.workouts,
            self.sets,
            rng=self.rng,
        )

    def generate_suggestions(
        self,
        profile: UserProfile | None = None,
        today: datetime.date | None = None,
        window_days: int | None = None,
    ) -> List[Suggestion]:
        profile = profile or self.profiles.fetch()
        return evaluate_rules(profile, self.window(today, window_days))
