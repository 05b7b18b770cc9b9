from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from models import ActivityLevel, BiologicalSex, FitnessGoal


class SettingsSchema(BaseModel):
    weight_unit: Literal["lbs", "kg"] = "lbs"
    timezone: str = "UTC"
    suggestion_window_days: int = Field(7, ge=1, le=30)
    correlation_days: int = Field(7, ge=1, le=365)
    streaks_enabled: bool = True


class ProfileSchema(BaseModel):
    target_protein: float = Field(150.0, ge=0)
    target_carbs: float = Field(200.0, ge=0)
    target_fat: float = Field(65.0, ge=0)
    target_calories: float = Field(2200.0, ge=0)
    sleep_goal_hours: float = Field(7.5, gt=0, le=24)
    activity_level: ActivityLevel = ActivityLevel.MODERATE
    body_weight: Optional[float] = Field(None, gt=0)
    height_inches: Optional[float] = Field(None, gt=0)
    age: Optional[int] = Field(None, gt=0)
    biological_sex: Optional[BiologicalSex] = None
    primary_goal: FitnessGoal = FitnessGoal.MUSCLE_GAIN
    goal_weight: Optional[float] = Field(None, gt=0)


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def validate_profile(data: dict) -> ProfileSchema:
    try:
        return ProfileSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
