from __future__ import annotations
import datetime
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import ClassVar, Dict, List, Optional

from algorithms.math_tools import MathTools
from algorithms.weight_converter import WeightConverter


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    ACTIVE = "active"
    VERY_ACTIVE = "very_active"

    @property
    def multiplier(self) -> float:
        return {
            ActivityLevel.SEDENTARY: 1.2,
            ActivityLevel.LIGHT: 1.375,
            ActivityLevel.MODERATE: 1.55,
            ActivityLevel.ACTIVE: 1.725,
            ActivityLevel.VERY_ACTIVE: 1.9,
        }[self]


class BiologicalSex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class FitnessGoal(str, Enum):
    MUSCLE_GAIN = "muscle_gain"
    FAT_LOSS = "fat_loss"
    MAINTENANCE = "maintenance"
    ATHLETIC_PERFORMANCE = "athletic_performance"
    GENERAL_HEALTH = "general_health"


class Stream(str, Enum):
    """Activity-logging category tracked by the streak tracker."""

    WORKOUT = "workout"
    NUTRITION = "nutrition"


class SuggestionCategory(str, Enum):
    NUTRITION = "nutrition"
    WORKOUT = "workout"
    RECOVERY = "recovery"
    GENERAL = "general"


class SuggestionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class AdjustmentReason(str, Enum):
    HIGH_VOLUME_RECOVERY = "high_volume_recovery"
    LOW_PROTEIN = "low_protein"
    CALORIC_DEFICIT = "caloric_deficit"
    NONE = "none"


@dataclass
class UserProfile:
    """Nutrition and recovery targets for the single local user."""

    target_protein: float = 150.0
    target_carbs: float = 200.0
    target_fat: float = 65.0
    target_calories: float = 2200.0
    sleep_goal_hours: float = 7.5
    activity_level: ActivityLevel = ActivityLevel.MODERATE
    body_weight: Optional[float] = None  # lbs
    height_inches: Optional[float] = None
    age: Optional[int] = None
    biological_sex: Optional[BiologicalSex] = None
    primary_goal: FitnessGoal = FitnessGoal.MUSCLE_GAIN
    goal_weight: Optional[float] = None

    def protein_target(self, multiplier: float = 0.9) -> float | None:
        """Protein grams per pound of body weight, if the weight is known."""
        if self.body_weight is None:
            return None
        return self.body_weight * multiplier

    def bmr(self) -> float | None:
        """Basal metabolic rate using the Mifflin-St Jeor equation."""
        if (
            self.body_weight is None
            or self.height_inches is None
            or self.age is None
            or self.biological_sex is None
        ):
            return None
        weight_kg = WeightConverter.lb_to_kg(self.body_weight, precise=True)
        height_cm = WeightConverter.in_to_cm(self.height_inches)
        base = 10 * weight_kg + 6.25 * height_cm - 5 * self.age
        if self.biological_sex == BiologicalSex.MALE:
            return base + 5
        return base - 161

    def tdee(self) -> float | None:
        bmr = self.bmr()
        if bmr is None:
            return None
        return bmr * ActivityLevel(self.activity_level).multiplier

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("activity_level", "biological_sex", "primary_goal"):
            if isinstance(data[key], Enum):
                data[key] = data[key].value
        return data


@dataclass
class StreamStreak:
    current: int = 0
    longest: int = 0
    last_logged_day: Optional[datetime.date] = None
    start_day: Optional[datetime.date] = None
    total_days: int = 0

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "longest": self.longest,
            "last_logged_day": (
                self.last_logged_day.isoformat() if self.last_logged_day else None
            ),
            "start_day": self.start_day.isoformat() if self.start_day else None,
            "total_days": self.total_days,
        }


@dataclass
class StreakState:
    """Workout and nutrition streaks sharing one grace day."""

    workout: StreamStreak = field(default_factory=StreamStreak)
    nutrition: StreamStreak = field(default_factory=StreamStreak)
    grace_days_remaining: int = 1
    grace_active: bool = False
    combined_current: int = 0
    combined_longest: int = 0
    created_on: datetime.date = field(default_factory=datetime.date.today)

    def stream(self, stream: Stream | str) -> StreamStreak:
        if Stream(stream) == Stream.WORKOUT:
            return self.workout
        return self.nutrition

    def to_dict(self) -> dict:
        return {
            "workout": self.workout.to_dict(),
            "nutrition": self.nutrition.to_dict(),
            "grace_days_remaining": self.grace_days_remaining,
            "grace_active": self.grace_active,
            "combined_current": self.combined_current,
            "combined_longest": self.combined_longest,
            "created_on": self.created_on.isoformat(),
        }


@dataclass
class DailySummary:
    date: datetime.date
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fat: float = 0.0
    sleep_hours: Optional[float] = None
    recovery_score: float = 0.0
    total_workout_volume: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass
class WorkoutSet:
    weight: float
    reps: int
    timestamp: datetime.datetime
    exercise: str
    muscle_group: Optional[str] = None
    workout_id: Optional[int] = None
    rpe: Optional[int] = None
    id: Optional[int] = None

    @property
    def volume(self) -> float:
        return MathTools.volume([(self.reps, self.weight)])


@dataclass
class Workout:
    id: int
    date: datetime.date
    name: Optional[str] = None
    completed: bool = False
    sets: List[WorkoutSet] = field(default_factory=list)

    @property
    def total_volume(self) -> float:
        return MathTools.volume((s.reps, s.weight) for s in self.sets)

    def volume_by_muscle_group(self) -> Dict[str, float]:
        result: Dict[str, float] = {}
        for s in self.sets:
            if not s.muscle_group:
                continue
            result[s.muscle_group] = result.get(s.muscle_group, 0.0) + s.volume
        return result

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "name": self.name,
            "completed": self.completed,
            "total_volume": self.total_volume,
        }


@dataclass
class Suggestion:
    category: SuggestionCategory
    priority: SuggestionPriority
    title: str
    message: str
    actionable: bool
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category.value,
            "priority": self.priority.value,
            "title": self.title,
            "message": self.message,
            "actionable": self.actionable,
        }


@dataclass(frozen=True)
class MacroAdjustment:
    carbs: float
    protein: float
    fat: float
    reason: AdjustmentReason

    NONE: ClassVar["MacroAdjustment"]

    @property
    def has_adjustment(self) -> bool:
        return self.carbs != 0 or self.protein != 0 or self.fat != 0

    def to_dict(self) -> dict:
        return {
            "carbs": self.carbs,
            "protein": self.protein,
            "fat": self.fat,
            "reason": self.reason.value,
            "has_adjustment": self.has_adjustment,
        }


MacroAdjustment.NONE = MacroAdjustment(0.0, 0.0, 0.0, AdjustmentReason.NONE)


@dataclass
class CorrelationDataPoint:
    date: datetime.date
    protein_intake: float
    calorie_intake: float
    workout_volume: float
    recovery_score: float
    sleep_hours: Optional[float] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass
class CorrelationData:
    start_date: datetime.date
    end_date: datetime.date
    data_points: List[CorrelationDataPoint]

    @staticmethod
    def _avg(values: List[float]) -> float:
        return sum(values) / len(values) if values else 0.0

    @property
    def average_protein(self) -> float:
        return self._avg([p.protein_intake for p in self.data_points])

    @property
    def average_calories(self) -> float:
        return self._avg([p.calorie_intake for p in self.data_points])

    @property
    def average_volume(self) -> float:
        return self._avg([p.workout_volume for p in self.data_points])

    @property
    def average_recovery_score(self) -> float:
        return self._avg([p.recovery_score for p in self.data_points])

    @property
    def average_sleep(self) -> float:
        return self._avg(
            [p.sleep_hours for p in self.data_points if p.sleep_hours is not None]
        )

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "data_points": [p.to_dict() for p in self.data_points],
            "average_protein": round(self.average_protein, 2),
            "average_calories": round(self.average_calories, 2),
            "average_volume": round(self.average_volume, 2),
            "average_recovery_score": round(self.average_recovery_score, 2),
            "average_sleep": round(self.average_sleep, 2),
        }
