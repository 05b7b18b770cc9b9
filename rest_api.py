import datetime
import logging
from fastapi import FastAPI, HTTPException, Body, APIRouter, Request
from fastapi.responses import JSONResponse

from config import APP_VERSION
from db import (
    BodyWeightRepository,
    DailySummaryRepository,
    ExerciseRepository,
    ProfileRepository,
    SetRepository,
    SettingsRepository,
    StoreError,
    StreakRepository,
    WorkoutRepository,
)
from models import Stream, UserProfile
from recovery_service import RecoveryService, recovery_buffer
from settings_schema import validate_profile
from stats_service import StatisticsService
from streak_service import MILESTONES, StreakService
from suggestion_service import SuggestionService, sort_by_priority

logger = logging.getLogger(__name__)


def _parse_day(value: str | None, field: str = "date") -> datetime.date:
    if value is None:
        return datetime.date.today()
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=400, detail=f"{field} must be in YYYY-MM-DD format"
        )


class InsightsAPI:
    """Provides REST endpoints for logging and the recovery insights engine."""

    def __init__(
        self,
        db_path: str = "ironlog.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.profiles = ProfileRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.sets = SetRepository(db_path)
        self.summaries = DailySummaryRepository(db_path)
        self.body_weights = BodyWeightRepository(db_path)
        self.streak_repo = StreakRepository(db_path)
        self.streaks = StreakService(self.streak_repo, self.settings)
        self.recovery = RecoveryService(self.summaries, self.workouts, self.profiles)
        self.suggestions = SuggestionService(
            self.summaries,
            self.workouts,
            self.sets,
            self.profiles,
            self.settings,
        )
        self.statistics = StatisticsService(
            self.summaries, self.body_weights, self.profiles, self.settings
        )
        self.app = FastAPI(
            title="IronLog API",
            description="Workout, nutrition and recovery insights endpoints.",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _rescore(self, day: datetime.date) -> float | None:
        try:
            return self.recovery.score_for_day(day)
        except StoreError as e:
            logger.warning("could not rescore %s: %s", day, e)
            return None

    def _refresh_workout_day(self, workout_id: int) -> None:
        _wid, d, _name, done = self.workouts.fetch_detail(workout_id)
        if done:
            self._refresh_day(datetime.date.fromisoformat(d))

    def _refresh_day(self, day: datetime.date) -> None:
        volume = self.workouts.daily_volume(day.isoformat())
        self.summaries.set_workout_volume(day.isoformat(), volume)
        self._rescore(day)

    def _setup_routes(self) -> None:
        streaks_router = APIRouter(prefix="/streaks", tags=["Streaks"])
        recovery_router = APIRouter(prefix="/recovery", tags=["Recovery"])
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"])

        @self.app.exception_handler(StoreError)
        async def store_error_handler(request: Request, exc: StoreError):
            logger.error("store failure on %s: %s", request.url.path, exc)
            return JSONResponse(status_code=500, content={"detail": str(exc)})

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            self.workouts.fetch_all_workouts()
            return {"status": "ok", "version": APP_VERSION}

        @self.app.get("/settings")
        def get_settings():
            return self.settings.all_settings()

        @self.app.post("/settings")
        def update_settings(
            weight_unit: str = None,
            timezone: str = None,
            suggestion_window_days: int = None,
            correlation_days: int = None,
            streaks_enabled: bool = None,
        ):
            values = {
                "weight_unit": weight_unit,
                "timezone": timezone,
                "suggestion_window_days": suggestion_window_days,
                "correlation_days": correlation_days,
                "streaks_enabled": streaks_enabled,
            }
            try:
                self.settings.update({k: v for k, v in values.items() if v is not None})
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @self.app.get("/profile")
        def get_profile():
            profile = self.profiles.fetch()
            data = profile.to_dict()
            data["bmr"] = profile.bmr()
            data["tdee"] = profile.tdee()
            data["protein_target"] = profile.protein_target()
            return data

        @self.app.put("/profile")
        def update_profile(data: dict = Body(...)):
            current = self.profiles.fetch().to_dict()
            current.update(data)
            try:
                validated = validate_profile(current)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.profiles.save(UserProfile(**validated.model_dump()))
            return {"status": "updated"}

        @self.app.post(
            "/workouts",
            summary="Create workout",
            description="Create a new workout session.",
        )
        def create_workout(date: str = None, name: str = None):
            day = _parse_day(date)
            wid = self.workouts.create(day.isoformat(), name)
            return {"id": wid}

        @self.app.get(
            "/workouts",
            summary="List workouts",
            description="Retrieve logged workouts optionally filtered by date range.",
        )
        def list_workouts(
            start_date: str = None,
            end_date: str = None,
            completed_only: bool = False,
        ):
            rows = self.workouts.fetch_all_workouts(start_date, end_date, completed_only)
            return [
                {"id": wid, "date": d, "name": name, "completed": bool(done)}
                for wid, d, name, done in rows
            ]

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            try:
                workout = self.workouts.fetch_workout(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            data = workout.to_dict()
            data["volume_by_muscle_group"] = workout.volume_by_muscle_group()
            return data

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: int):
            try:
                _wid, d, _name, done = self.workouts.fetch_detail(workout_id)
                self.workouts.delete(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            if done:
                self._refresh_day(datetime.date.fromisoformat(d))
            return {"status": "deleted"}

        @self.app.post("/workouts/{workout_id}/exercises")
        def add_exercise(
            workout_id: int,
            name: str,
            muscle_group: str = None,
            note: str = None,
        ):
            try:
                ex_id = self.exercises.add(workout_id, name, muscle_group, note)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"id": ex_id}

        @self.app.get("/workouts/{workout_id}/exercises")
        def list_exercises(workout_id: int):
            rows = self.exercises.fetch_for_workout(workout_id)
            return [
                {"id": eid, "name": name, "muscle_group": group, "note": note}
                for eid, name, group, note in rows
            ]

        @self.app.delete("/exercises/{exercise_id}")
        def delete_exercise(exercise_id: int):
            try:
                workout_id = self.exercises.remove(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self._refresh_workout_day(workout_id)
            return {"status": "deleted"}

        @self.app.post("/exercises/{exercise_id}/sets")
        def add_set(
            exercise_id: int,
            reps: int,
            weight: float,
            rpe: int = None,
            timestamp: str = None,
        ):
            try:
                set_id = self.sets.add(exercise_id, reps, weight, rpe, timestamp)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": set_id}

        @self.app.get("/exercises/{exercise_id}/sets")
        def list_sets(exercise_id: int):
            rows = self.sets.fetch_for_exercise(exercise_id)
            return [
                {"id": sid, "reps": reps, "weight": weight, "rpe": rpe, "timestamp": ts}
                for sid, reps, weight, rpe, ts in rows
            ]

        @self.app.delete("/sets/{set_id}")
        def delete_set(set_id: int):
            try:
                workout_id = self.sets.remove(set_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self._refresh_workout_day(workout_id)
            return {"status": "deleted"}

        @self.app.post("/workouts/{workout_id}/complete")
        def complete_workout(workout_id: int, timestamp: str = None):
            try:
                self.workouts.complete(workout_id, timestamp)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            workout = self.workouts.fetch_workout(workout_id)
            day = workout.date
            volume = self.workouts.daily_volume(day.isoformat())
            self.summaries.set_workout_volume(day.isoformat(), volume)
            self.streaks.record(Stream.WORKOUT, day)
            score = self._rescore(day)
            buffer = self.recovery.buffer_for_workout(workout_id)
            return {
                "status": "completed",
                "volume": workout.total_volume,
                "daily_volume": volume,
                "recovery_score": score,
                "buffer": buffer.to_dict(),
            }

        @self.app.post("/nutrition")
        def log_nutrition(
            date: str = None,
            calories: float = 0.0,
            protein: float = 0.0,
            carbs: float = 0.0,
            fat: float = 0.0,
        ):
            day = _parse_day(date)
            try:
                self.summaries.add_nutrition(
                    day.isoformat(), calories, protein, carbs, fat
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.streaks.record(Stream.NUTRITION, day)
            self._rescore(day)
            return self.summaries.fetch(day.isoformat()).to_dict()

        @self.app.post("/sleep")
        def log_sleep(hours: float, date: str = None):
            day = _parse_day(date)
            try:
                self.summaries.set_sleep(day.isoformat(), hours)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self._rescore(day)
            return self.summaries.fetch(day.isoformat()).to_dict()

        @self.app.get("/daily_summaries")
        def list_summaries(
            start_date: str = None,
            end_date: str = None,
            descending: bool = False,
        ):
            rows = self.summaries.fetch_range(start_date, end_date, descending)
            return [s.to_dict() for s in rows]

        @self.app.get("/daily_summaries/{date}")
        def get_summary(date: str):
            day = _parse_day(date)
            summary = self.summaries.fetch(day.isoformat())
            if summary is None:
                raise HTTPException(status_code=404, detail="summary not found")
            return summary.to_dict()

        @self.app.post("/body_weight")
        def log_body_weight(weight: float, date: str = None):
            day = _parse_day(date)
            try:
                entry_id = self.body_weights.log(day.isoformat(), weight)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": entry_id}

        @self.app.get("/body_weight")
        def list_body_weight(
            start_date: str = None, end_date: str = None, unit: str = None
        ):
            unit = unit or self.settings.get_text("weight_unit", "lbs")
            return self.statistics.body_weight_history(start_date, end_date, unit)

        @self.app.delete("/body_weight/{entry_id}")
        def delete_body_weight(entry_id: int):
            try:
                self.body_weights.delete(entry_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @streaks_router.get("")
        def get_streaks(date: str = None):
            return self.streaks.overview(_parse_day(date))

        @streaks_router.post("/record")
        def record_streak(stream: str, date: str = None):
            day = _parse_day(date)
            try:
                state = self.streaks.record(Stream(stream), day)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return state.to_dict()

        @streaks_router.post("/reconcile")
        def reconcile_streaks(date: str = None):
            return self.streaks.reconcile(_parse_day(date)).to_dict()

        @streaks_router.get("/milestones")
        def list_milestones():
            return [m.to_dict() for m in MILESTONES]

        @recovery_router.get("/score")
        def recovery_score(date: str = None):
            day = _parse_day(date)
            score = self.recovery.score_for_day(day)
            return {"date": day.isoformat(), "score": score}

        @recovery_router.get("/buffer/{workout_id}")
        def workout_buffer(workout_id: int):
            try:
                percentile = self.recovery.percentile_for_workout(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            result = recovery_buffer(percentile).to_dict()
            result["percentile"] = percentile
            return result

        @self.app.get("/suggestions")
        def list_suggestions(
            date: str = None, window_days: int = None, sort: bool = False
        ):
            if window_days is not None and window_days < 1:
                raise HTTPException(status_code=400, detail="window_days must be positive")
            items = self.suggestions.generate_suggestions(
                today=_parse_day(date), window_days=window_days
            )
            if sort:
                items = sort_by_priority(items)
            return [s.to_dict() for s in items]

        @stats_router.get("/correlation")
        def correlation(days: int = None, date: str = None):
            if days is not None and days < 0:
                raise HTTPException(status_code=400, detail="days must be non-negative")
            return self.statistics.correlation_report(days, _parse_day(date))

        @stats_router.get("/weight_trend")
        def weight_trend(goal_weight: float = None):
            return self.statistics.weight_trend(goal_weight)

        @stats_router.get("/weight_stats")
        def weight_stats(start_date: str = None, end_date: str = None, unit: str = None):
            unit = unit or self.settings.get_text("weight_unit", "lbs")
            return self.statistics.weight_stats(start_date, end_date, unit)

        @stats_router.get("/weight_forecast")
        def weight_forecast(days: int = 7):
            return self.statistics.weight_forecast(days)

        self.app.include_router(streaks_router)
        self.app.include_router(recovery_router)
        self.app.include_router(stats_router)


api = InsightsAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
