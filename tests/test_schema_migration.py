import os
import sqlite3
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, DailySummaryRepository


class TestSchemaMigration:
    def test_adds_missing_columns_and_keeps_rows(self, tmp_path):
        db_file = tmp_path / "test.db"
        conn = sqlite3.connect(str(db_file))
        conn.execute(
            "CREATE TABLE daily_summaries (date TEXT PRIMARY KEY, total_calories REAL, total_protein REAL, total_carbs REAL, total_fat REAL, sleep_hours REAL)"
        )
        conn.execute(
            "INSERT INTO daily_summaries VALUES ('2024-01-01', 2000, 150, 200, 60, 7.5)"
        )
        conn.execute("CREATE TABLE daily_summaries_old (date TEXT)")
        conn.commit()
        conn.close()

        Database(str(db_file))

        conn = sqlite3.connect(str(db_file))
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='daily_summaries_old'"
        )
        assert cur.fetchone() is None
        cur = conn.execute("PRAGMA table_info(daily_summaries)")
        cols = [row[1] for row in cur.fetchall()]
        assert "total_workout_volume" in cols
        assert "recovery_score" in cols
        conn.close()

        summary = DailySummaryRepository(str(db_file)).fetch("2024-01-01")
        assert summary.total_protein == 150.0
        assert summary.sleep_hours == 7.5
        assert summary.total_workout_volume == 0.0

    def test_fresh_database_has_default_settings(self, tmp_path):
        db_file = tmp_path / "fresh.db"
        Database(str(db_file))
        conn = sqlite3.connect(str(db_file))
        rows = dict(conn.execute("SELECT key, value FROM settings").fetchall())
        conn.close()
        assert rows["suggestion_window_days"] == "7"
        assert rows["streaks_enabled"] == "1"
