import os
import sys
import datetime
import random
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    DailySummaryRepository,
    ExerciseRepository,
    ProfileRepository,
    SetRepository,
    SettingsRepository,
    StoreError,
    WorkoutRepository,
)
from models import (
    DailySummary,
    SuggestionCategory,
    SuggestionPriority,
    UserProfile,
    Workout,
    WorkoutSet,
)
from suggestion_service import (
    SuggestionService,
    SuggestionWindow,
    check_carb_timing,
    check_creatine,
    check_deload,
    check_muscle_group_recovery,
    check_progressive_overload,
    check_protein_intake,
    check_sleep_recovery,
    check_strength_plateau,
    evaluate_rules,
    sort_by_priority,
)

TODAY = datetime.date(2024, 3, 10)


def days_ago(n: int) -> datetime.date:
    return TODAY - datetime.timedelta(days=n)


class FixedRandom(random.Random):
    def __init__(self, value: int) -> None:
        super().__init__()
        self.value = value

    def randrange(self, *args, **kwargs) -> int:
        return self.value


class FakeWindow:
    """Window over in-memory history, most recent entries first."""

    def __init__(self, summaries=(), workouts=(), sets=(), rng=None) -> None:
        self.today = TODAY
        self.summaries = list(summaries)
        self._workouts = list(workouts)
        self._sets = list(sets)
        self.rng = rng or FixedRandom(1)

    def completed_workouts(self, days: int):
        cutoff = TODAY - datetime.timedelta(days=days)
        return [w for w in self._workouts if w.date >= cutoff]

    def recent_sets(self, days: int):
        cutoff = TODAY - datetime.timedelta(days=days)
        return [s for s in self._sets if s.timestamp.date() >= cutoff]


def summary(day: datetime.date, **values) -> DailySummary:
    return DailySummary(date=day, **values)


def workout(
    wid: int,
    day: datetime.date,
    volume: float,
    group: str = "chest",
    exercise: str = "Bench Press",
) -> Workout:
    ts = datetime.datetime.combine(day, datetime.time(18, 0))
    s = WorkoutSet(
        weight=volume / 10, reps=10, timestamp=ts, exercise=exercise, muscle_group=group
    )
    return Workout(id=wid, date=day, completed=True, sets=[s])


def wset(day: datetime.date, reps: int, weight: float, exercise: str = "Bench Press"):
    ts = datetime.datetime.combine(day, datetime.time(18, 0))
    return WorkoutSet(weight=weight, reps=reps, timestamp=ts, exercise=exercise)


class StrengthPlateauTestCase(unittest.TestCase):
    def _window(self, volumes, calories=1800.0):
        return FakeWindow(
            summary(days_ago(n), total_calories=calories, total_workout_volume=v)
            for n, v in enumerate(volumes)
        )

    def test_plateau_in_deficit(self) -> None:
        window = self._window([100, 100, 100, 200, 200, 200])
        result = check_strength_plateau(UserProfile(target_calories=2200), window)
        self.assertIsNotNone(result)
        self.assertEqual(result.priority, SuggestionPriority.HIGH)
        self.assertEqual(result.category, SuggestionCategory.NUTRITION)
        self.assertEqual(result.title, "Strength Plateau Detected")
        self.assertIn("400-calorie deficit", result.message)
        self.assertTrue(result.actionable)

    def test_progressing(self) -> None:
        window = self._window([200, 200, 200, 100, 100, 100])
        self.assertIsNone(check_strength_plateau(UserProfile(), window))

    def test_small_deficit(self) -> None:
        window = self._window([100, 100, 100, 200, 200, 200], calories=1900.0)
        self.assertIsNone(check_strength_plateau(UserProfile(target_calories=2200), window))

    def test_needs_three_training_days(self) -> None:
        window = self._window([100, 0, 100, 0])
        self.assertIsNone(check_strength_plateau(UserProfile(), window))

    def test_short_prior_history_is_averaged_over_three(self) -> None:
        # one older session of 240 averages to 80, below the recent 100
        window = self._window([100, 100, 100, 240])
        self.assertIsNone(check_strength_plateau(UserProfile(), window))
        window = self._window([100, 100, 100, 300, 300])
        self.assertIsNotNone(check_strength_plateau(UserProfile(), window))


class ProteinIntakeTestCase(unittest.TestCase):
    def test_low_protein(self) -> None:
        window = FakeWindow(
            [summary(TODAY, total_protein=100), summary(days_ago(1), total_protein=120)]
        )
        result = check_protein_intake(UserProfile(body_weight=200), window)
        self.assertEqual(result.priority, SuggestionPriority.MEDIUM)
        self.assertEqual(
            result.message,
            "Protein intake below optimal for muscle synthesis. "
            "Target at least 140g daily.",
        )

    def test_enough_protein(self) -> None:
        window = FakeWindow([summary(TODAY, total_protein=140)])
        self.assertIsNone(check_protein_intake(UserProfile(body_weight=200), window))

    def test_unknown_body_weight(self) -> None:
        window = FakeWindow([summary(TODAY, total_protein=10)])
        self.assertIsNone(check_protein_intake(UserProfile(), window))
        self.assertIsNone(check_protein_intake(UserProfile(body_weight=200), FakeWindow()))


class SleepRecoveryTestCase(unittest.TestCase):
    def test_low_sleep(self) -> None:
        window = FakeWindow([summary(TODAY, sleep_hours=5.0)])
        result = check_sleep_recovery(UserProfile(sleep_goal_hours=8.0), window)
        self.assertEqual(result.priority, SuggestionPriority.HIGH)
        self.assertEqual(result.category, SuggestionCategory.RECOVERY)
        self.assertTrue(result.message.endswith("Sleep: 5.0hrs (goal: 8.0hrs)"))

    def test_only_latest_night_counts(self) -> None:
        window = FakeWindow(
            [summary(TODAY, sleep_hours=7.0), summary(days_ago(1), sleep_hours=3.0)]
        )
        self.assertIsNone(check_sleep_recovery(UserProfile(sleep_goal_hours=8.0), window))

    def test_sleep_not_logged(self) -> None:
        window = FakeWindow([summary(TODAY)])
        self.assertIsNone(check_sleep_recovery(UserProfile(), window))


class MuscleGroupRecoveryTestCase(unittest.TestCase):
    def test_heavy_leg_day(self) -> None:
        window = FakeWindow(workouts=[workout(1, days_ago(1), 1200, "quads", "Squat")])
        result = check_muscle_group_recovery(UserProfile(), window)
        self.assertEqual(result.title, "Leg Recovery in Progress")
        self.assertFalse(result.actionable)
        self.assertEqual(result.priority, SuggestionPriority.LOW)

    def test_light_or_old_leg_day(self) -> None:
        light = FakeWindow(workouts=[workout(1, days_ago(1), 900, "quads", "Squat")])
        self.assertIsNone(check_muscle_group_recovery(UserProfile(), light))
        old = FakeWindow(workouts=[workout(1, days_ago(3), 3000, "quads", "Squat")])
        self.assertIsNone(check_muscle_group_recovery(UserProfile(), old))


class ProgressiveOverloadTestCase(unittest.TestCase):
    def test_three_strong_sessions(self) -> None:
        sets = [wset(days_ago(n), 8, 135.0) for n in (1, 3, 5)]
        result = check_progressive_overload(UserProfile(), FakeWindow(sets=sets))
        self.assertEqual(result.title, "Time to Progress!")
        self.assertEqual(
            result.message,
            "You've hit 8+ reps on Bench Press three sessions in a row. "
            "Try 140 lbs next time.",
        )

    def test_mixed_weights_or_reps(self) -> None:
        sets = [wset(days_ago(1), 8, 140.0), wset(days_ago(3), 8, 135.0), wset(days_ago(5), 8, 135.0)]
        self.assertIsNone(check_progressive_overload(UserProfile(), FakeWindow(sets=sets)))
        sets = [wset(days_ago(n), r, 135.0) for n, r in ((1, 8), (3, 7), (5, 9))]
        self.assertIsNone(check_progressive_overload(UserProfile(), FakeWindow(sets=sets)))

    def test_needs_three_sets(self) -> None:
        sets = [wset(days_ago(n), 10, 100.0) for n in (1, 2)]
        self.assertIsNone(check_progressive_overload(UserProfile(), FakeWindow(sets=sets)))

    def test_other_exercise_qualifies(self) -> None:
        sets = [wset(days_ago(1), 5, 200.0, "Deadlift")]
        sets += [wset(days_ago(n), 10, 60.0, "Row") for n in (2, 4, 6)]
        result = check_progressive_overload(UserProfile(), FakeWindow(sets=sets))
        self.assertIn("on Row", result.message)
        self.assertIn("Try 65 lbs", result.message)

    def test_exercise_names_match_regardless_of_case(self) -> None:
        sets = [
            wset(days_ago(1), 8, 135.0, "bench press"),
            wset(days_ago(3), 8, 135.0, "Bench Press"),
            wset(days_ago(5), 8, 135.0, "BENCH PRESS "),
        ]
        result = check_progressive_overload(UserProfile(), FakeWindow(sets=sets))
        self.assertEqual(result.title, "Time to Progress!")
        self.assertIn("on bench press three sessions", result.message)


class DeloadTestCase(unittest.TestCase):
    WEEK_STARTS = [datetime.date(2024, 2, 12) + datetime.timedelta(weeks=k) for k in range(4)]

    def _workouts(self, skip_week: int | None = None, declining: bool = True):
        days = []
        for k, start in enumerate(self.WEEK_STARTS):
            offsets = (0, 1, 3) if k == skip_week else (0, 1, 3, 4)
            days += [start + datetime.timedelta(days=o) for o in offsets]
        days.sort(reverse=True)
        oldest = set(days[-2:])
        return [
            workout(i, d, 2000 if declining and d in oldest else 1000)
            for i, d in enumerate(days, start=1)
        ]

    def test_deload_recommended(self) -> None:
        result = check_deload(UserProfile(), FakeWindow(workouts=self._workouts()))
        self.assertEqual(result.title, "Deload Week Recommended")
        self.assertEqual(result.priority, SuggestionPriority.HIGH)

    def test_not_enough_busy_weeks(self) -> None:
        window = FakeWindow(workouts=self._workouts(skip_week=2))
        self.assertIsNone(check_deload(UserProfile(), window))

    def test_volume_holding_up(self) -> None:
        window = FakeWindow(workouts=self._workouts(declining=False))
        self.assertIsNone(check_deload(UserProfile(), window))


class CarbTimingTestCase(unittest.TestCase):
    def test_high_volume_low_carbs(self) -> None:
        window = FakeWindow([summary(TODAY, total_workout_volume=6000, total_carbs=100)])
        result = check_carb_timing(UserProfile(target_carbs=200), window)
        self.assertEqual(result.title, "Fuel Your Training")
        self.assertIn("adding 50g carbs", result.message)

    def test_enough_carbs_or_low_volume(self) -> None:
        fed = FakeWindow([summary(TODAY, total_workout_volume=6000, total_carbs=160)])
        self.assertIsNone(check_carb_timing(UserProfile(target_carbs=200), fed))
        easy = FakeWindow([summary(TODAY, total_workout_volume=5000, total_carbs=0)])
        self.assertIsNone(check_carb_timing(UserProfile(target_carbs=200), easy))

    def test_only_today_counts(self) -> None:
        window = FakeWindow([summary(days_ago(1), total_workout_volume=9000)])
        self.assertIsNone(check_carb_timing(UserProfile(), window))


class CreatineTestCase(unittest.TestCase):
    def _workouts(self, count: int):
        return [workout(i, days_ago(i * 2), 1000) for i in range(count)]

    def test_consistent_training_and_lucky_draw(self) -> None:
        window = FakeWindow(workouts=self._workouts(12), rng=FixedRandom(0))
        result = check_creatine(UserProfile(), window)
        self.assertEqual(result.title, "Consider Creatine")
        self.assertEqual(result.category, SuggestionCategory.GENERAL)
        self.assertFalse(result.actionable)

    def test_never_below_twelve_workouts(self) -> None:
        window = FakeWindow(workouts=self._workouts(11), rng=FixedRandom(0))
        self.assertIsNone(check_creatine(UserProfile(), window))

    def test_unlucky_draw(self) -> None:
        window = FakeWindow(workouts=self._workouts(15), rng=FixedRandom(3))
        self.assertIsNone(check_creatine(UserProfile(), window))


class BrokenSummaries:
    def __init__(self) -> None:
        self.calls = 0

    def fetch_range(self, *args, **kwargs):
        self.calls += 1
        raise StoreError("disk I/O error")


class StubWorkouts:
    def __init__(self, workouts) -> None:
        self.workouts = workouts

    def fetch_workouts(self, start_date=None, end_date=None, completed_only=True):
        return [
            w for w in self.workouts if start_date <= w.date.isoformat() <= end_date
        ]


class StubSets:
    def fetch_range(self, start=None, end=None, descending=True):
        return []


class RuleEngineTestCase(unittest.TestCase):
    def test_failed_source_only_silences_its_rules(self) -> None:
        summaries = BrokenSummaries()
        window = SuggestionWindow(
            TODAY,
            7,
            summaries,
            StubWorkouts([workout(1, days_ago(1), 1500, "quads", "Squat")]),
            StubSets(),
            rng=FixedRandom(1),
        )
        with self.assertLogs("suggestion_service", level="WARNING"):
            results = evaluate_rules(UserProfile(body_weight=200), window)
        self.assertEqual([s.title for s in results], ["Leg Recovery in Progress"])
        self.assertEqual(summaries.calls, 1)

    def test_sort_by_priority_is_stable(self) -> None:
        window = FakeWindow(
            [
                summary(
                    TODAY,
                    total_protein=50,
                    sleep_hours=4.0,
                    total_workout_volume=6000,
                    total_carbs=0,
                )
            ]
        )
        results = evaluate_rules(UserProfile(body_weight=200), window)
        titles = [s.title for s in results]
        self.assertEqual(
            titles, ["Low Protein Intake", "Low Sleep Detected", "Fuel Your Training"]
        )
        ordered = [s.title for s in sort_by_priority(results)]
        self.assertEqual(
            ordered, ["Low Sleep Detected", "Low Protein Intake", "Fuel Your Training"]
        )


class SuggestionServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_suggestions.db"
        self.yaml_path = "test_suggestions.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)
        self.summaries = DailySummaryRepository(self.db_path)
        self.workouts = WorkoutRepository(self.db_path)
        self.exercises = ExerciseRepository(self.db_path)
        self.sets = SetRepository(self.db_path)
        self.profiles = ProfileRepository(self.db_path)
        self.service = SuggestionService(
            self.summaries,
            self.workouts,
            self.sets,
            self.profiles,
            self.settings,
            rng=FixedRandom(1),
        )

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_empty_history(self) -> None:
        self.assertEqual(self.service.generate_suggestions(today=TODAY), [])

    def test_stored_history(self) -> None:
        self.profiles.save(UserProfile(body_weight=200.0, sleep_goal_hours=8.0))
        self.summaries.add_nutrition(TODAY.isoformat(), calories=1500, protein=90)
        self.summaries.set_sleep(TODAY.isoformat(), 5.0)
        for n in (1, 3, 5):
            day = days_ago(n)
            wid = self.workouts.create(day.isoformat())
            ex_id = self.exercises.add(wid, "Back Squat", "Quads")
            self.sets.add(ex_id, 10, 120.0, timestamp=f"{day.isoformat()}T18:00:00")
            self.workouts.complete(wid)
        titles = [s.title for s in self.service.generate_suggestions(today=TODAY)]
        self.assertEqual(
            titles,
            [
                "Low Protein Intake",
                "Low Sleep Detected",
                "Leg Recovery in Progress",
                "Time to Progress!",
            ],
        )

    def test_window_setting(self) -> None:
        self.profiles.save(UserProfile(body_weight=200.0))
        self.summaries.add_nutrition(days_ago(5).isoformat(), protein=20)
        self.assertEqual(len(self.service.generate_suggestions(today=TODAY)), 1)
        self.settings.set_int("suggestion_window_days", 3)
        self.assertEqual(self.service.generate_suggestions(today=TODAY), [])
        self.assertEqual(
            len(self.service.generate_suggestions(today=TODAY, window_days=6)), 1
        )


if __name__ == "__main__":
    unittest.main()
