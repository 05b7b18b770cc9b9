import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    DailySummaryRepository,
    ExerciseRepository,
    ProfileRepository,
    SetRepository,
    WorkoutRepository,
)
from models import AdjustmentReason, MacroAdjustment, UserProfile
from recovery_service import (
    RecoveryService,
    recovery_buffer,
    recovery_score,
    volume_percentile,
)

TODAY = datetime.date(2024, 3, 10)


class RecoveryScoreTestCase(unittest.TestCase):
    def test_no_data_defaults(self) -> None:
        score = recovery_score(UserProfile(), None, None, None, TODAY)
        self.assertAlmostEqual(score, 62.5)

    def test_half_sleep_full_protein_trained_today(self) -> None:
        profile = UserProfile(sleep_goal_hours=8.0, target_protein=150.0)
        score = recovery_score(profile, 4.0, 150.0, TODAY, TODAY)
        self.assertAlmostEqual(score, 67.5)

    def test_well_rested(self) -> None:
        profile = UserProfile(sleep_goal_hours=8.0, target_protein=150.0)
        yesterday = TODAY - datetime.timedelta(days=1)
        score = recovery_score(profile, 7.0, 160.0, yesterday, TODAY)
        self.assertGreater(score, 90.0)
        self.assertLessEqual(score, 100.0)
        self.assertAlmostEqual(score, 95.0)

    def test_factors_are_capped(self) -> None:
        profile = UserProfile(sleep_goal_hours=8.0, target_protein=150.0)
        self.assertAlmostEqual(recovery_score(profile, 12.0, 400.0, None, TODAY), 100.0)
        self.assertAlmostEqual(recovery_score(profile, -2.0, -5.0, TODAY, TODAY), 12.5)

    def test_zero_targets_count_as_met(self) -> None:
        profile = UserProfile(target_protein=0.0)
        self.assertAlmostEqual(recovery_score(profile, None, 0.0, None, TODAY), 80.0)

    def test_monotonic_in_sleep(self) -> None:
        profile = UserProfile()
        scores = [
            recovery_score(profile, h / 2, 100.0, TODAY, TODAY) for h in range(0, 20)
        ]
        self.assertEqual(scores, sorted(scores))

    def test_bounds(self) -> None:
        profile = UserProfile()
        for sleep in (None, 0.0, 3.0, 9.0):
            for protein in (None, 0.0, 80.0, 300.0):
                for last in (None, TODAY, TODAY - datetime.timedelta(days=3)):
                    score = recovery_score(profile, sleep, protein, last, TODAY)
                    self.assertGreaterEqual(score, 0.0)
                    self.assertLessEqual(score, 100.0)


class VolumePercentileTestCase(unittest.TestCase):
    def test_empty_history(self) -> None:
        self.assertEqual(volume_percentile(5000.0, []), 0.5)

    def test_rank(self) -> None:
        history = [1000.0, 2000.0, 3000.0, 4000.0]
        self.assertEqual(volume_percentile(1000.0, history), 0.0)
        self.assertEqual(volume_percentile(3500.0, history), 0.75)
        self.assertEqual(volume_percentile(9000.0, history), 1.0)


class RecoveryBufferTestCase(unittest.TestCase):
    def test_below_threshold(self) -> None:
        for p in (0.0, 0.5, 0.8):
            self.assertIs(recovery_buffer(p), MacroAdjustment.NONE)
        self.assertFalse(recovery_buffer(0.8).has_adjustment)

    def test_ramp(self) -> None:
        adj = recovery_buffer(0.9)
        self.assertAlmostEqual(adj.carbs, 20.0)
        self.assertAlmostEqual(adj.protein, 10.0)
        self.assertEqual(adj.fat, 0.0)
        self.assertEqual(adj.reason, AdjustmentReason.HIGH_VOLUME_RECOVERY)
        full = recovery_buffer(1.0)
        self.assertAlmostEqual(full.carbs, 40.0)
        self.assertAlmostEqual(full.protein, 20.0)

    def test_just_above_threshold(self) -> None:
        adj = recovery_buffer(0.81)
        self.assertTrue(adj.has_adjustment)
        self.assertEqual(adj.reason, AdjustmentReason.HIGH_VOLUME_RECOVERY)
        self.assertLess(adj.carbs, 3.0)


class RecoveryServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_recovery.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.summaries = DailySummaryRepository(self.db_path)
        self.workouts = WorkoutRepository(self.db_path)
        self.exercises = ExerciseRepository(self.db_path)
        self.sets = SetRepository(self.db_path)
        self.profiles = ProfileRepository(self.db_path)
        self.service = RecoveryService(self.summaries, self.workouts, self.profiles)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def _workout(self, day: datetime.date, weight: float, complete: bool = True) -> int:
        wid = self.workouts.create(day.isoformat(), "Session")
        ex_id = self.exercises.add(wid, "Back Squat", "quads")
        self.sets.add(ex_id, 10, weight, timestamp=f"{day.isoformat()}T10:00:00")
        if complete:
            self.workouts.complete(wid)
        return wid

    def test_missing_summary(self) -> None:
        self.assertIsNone(self.service.score_for_day(TODAY))

    def test_score_written_back(self) -> None:
        self.profiles.save(UserProfile(sleep_goal_hours=8.0, target_protein=150.0))
        self.summaries.set_sleep(TODAY.isoformat(), 4.0)
        self.summaries.add_nutrition(TODAY.isoformat(), protein=150.0)
        self._workout(TODAY, 100.0)
        score = self.service.score_for_day(TODAY)
        self.assertAlmostEqual(score, 67.5)
        stored = self.summaries.fetch(TODAY.isoformat())
        self.assertAlmostEqual(stored.recovery_score, 67.5)

    def test_future_workouts_ignored(self) -> None:
        self.summaries.ensure(TODAY.isoformat())
        self._workout(TODAY + datetime.timedelta(days=1), 100.0)
        self._workout(TODAY, 100.0, complete=False)
        # logged protein of zero counts against the score
        self.assertAlmostEqual(self.service.score_for_day(TODAY), 45.0)

    def test_buffer_for_workout(self) -> None:
        for n, weight in enumerate((100.0, 150.0, 200.0, 250.0)):
            self._workout(TODAY - datetime.timedelta(days=n + 1), weight)
        big = self._workout(TODAY, 1000.0)
        self.assertEqual(self.service.percentile_for_workout(big), 0.8)
        self.assertIs(self.service.buffer_for_workout(big), MacroAdjustment.NONE)

    def test_buffer_for_first_workout(self) -> None:
        wid = self._workout(TODAY, 100.0, complete=False)
        self.assertEqual(self.service.percentile_for_workout(wid), 0.5)

    def test_unknown_workout(self) -> None:
        with self.assertRaises(ValueError):
            self.service.buffer_for_workout(99)


if __name__ == "__main__":
    unittest.main()
