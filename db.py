import sqlite3
import datetime
import logging
from contextlib import contextmanager
from typing import Callable, List, Optional, Tuple

from config import YamlConfig
from settings_schema import validate_settings
from models import (
    ActivityLevel,
    BiologicalSex,
    DailySummary,
    FitnessGoal,
    StreakState,
    StreamStreak,
    UserProfile,
    Workout,
    WorkoutSet,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the underlying store cannot be read or written."""


def _iso(value: datetime.date | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def _date(value: str | None) -> datetime.date | None:
    if not value:
        return None
    return datetime.date.fromisoformat(value[:10])


def _timestamp(value: str | None) -> str:
    """Normalise an ISO 8601 timestamp, defaulting to now."""
    if not value:
        return datetime.datetime.now().isoformat(timespec="seconds")
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except ValueError:
        raise ValueError("timestamp must be ISO 8601") from None
    return parsed.isoformat(timespec="seconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    name TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT
                );""",
            ["id", "date", "name", "completed", "completed_at"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    muscle_group TEXT,
                    note TEXT,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "name", "muscle_group", "note"],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    rpe INTEGER,
                    timestamp TEXT NOT NULL,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            ["id", "exercise_id", "reps", "weight", "rpe", "timestamp"],
        ),
        "daily_summaries": (
            """CREATE TABLE daily_summaries (
                    date TEXT PRIMARY KEY,
                    total_calories REAL NOT NULL DEFAULT 0,
                    total_protein REAL NOT NULL DEFAULT 0,
                    total_carbs REAL NOT NULL DEFAULT 0,
                    total_fat REAL NOT NULL DEFAULT 0,
                    sleep_hours REAL,
                    recovery_score REAL NOT NULL DEFAULT 0,
                    total_workout_volume REAL NOT NULL DEFAULT 0
                );""",
            [
                "date",
                "total_calories",
                "total_protein",
                "total_carbs",
                "total_fat",
                "sleep_hours",
                "recovery_score",
                "total_workout_volume",
            ],
        ),
        "profile": (
            """CREATE TABLE profile (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    target_protein REAL NOT NULL,
                    target_carbs REAL NOT NULL,
                    target_fat REAL NOT NULL,
                    target_calories REAL NOT NULL,
                    sleep_goal_hours REAL NOT NULL,
                    activity_level TEXT NOT NULL,
                    body_weight REAL,
                    height_inches REAL,
                    age INTEGER,
                    biological_sex TEXT,
                    primary_goal TEXT NOT NULL,
                    goal_weight REAL
                );""",
            [
                "id",
                "target_protein",
                "target_carbs",
                "target_fat",
                "target_calories",
                "sleep_goal_hours",
                "activity_level",
                "body_weight",
                "height_inches",
                "age",
                "biological_sex",
                "primary_goal",
                "goal_weight",
            ],
        ),
        "streaks": (
            """CREATE TABLE streaks (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    workout_current INTEGER NOT NULL DEFAULT 0,
                    workout_longest INTEGER NOT NULL DEFAULT 0,
                    workout_last TEXT,
                    workout_start TEXT,
                    workout_total INTEGER NOT NULL DEFAULT 0,
                    nutrition_current INTEGER NOT NULL DEFAULT 0,
                    nutrition_longest INTEGER NOT NULL DEFAULT 0,
                    nutrition_last TEXT,
                    nutrition_start TEXT,
                    nutrition_total INTEGER NOT NULL DEFAULT 0,
                    grace_days_remaining INTEGER NOT NULL DEFAULT 1,
                    grace_active INTEGER NOT NULL DEFAULT 0,
                    combined_current INTEGER NOT NULL DEFAULT 0,
                    combined_longest INTEGER NOT NULL DEFAULT 0,
                    created_on TEXT NOT NULL
                );""",
            [
                "id",
                "workout_current",
                "workout_longest",
                "workout_last",
                "workout_start",
                "workout_total",
                "nutrition_current",
                "nutrition_longest",
                "nutrition_last",
                "nutrition_start",
                "nutrition_total",
                "grace_days_remaining",
                "grace_active",
                "combined_current",
                "combined_longest",
                "created_on",
            ],
        ),
        "body_weight_logs": (
            """CREATE TABLE body_weight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    weight REAL NOT NULL
                );""",
            ["id", "date", "weight"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _SETTING_DEFAULTS = {
        "weight_unit": "lbs",
        "timezone": "UTC",
        "suggestion_window_days": "7",
        "correlation_days": "7",
        "streaks_enabled": "1",
    }

    def __init__(self, db_path: str = "ironlog.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path, timeout=30)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            connection.rollback()
            raise StoreError(str(e)) from e
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s", table)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in self._SETTING_DEFAULTS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    BOOL_KEYS = {"streaks_enabled"}
    INT_KEYS = {"suggestion_window_days", "correlation_days"}

    def __init__(self, db_path: str = "ironlog.db", yaml_path: str = "settings.yaml") -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, bool | int | float | str] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
            elif k in self.INT_KEYS:
                result[k] = int(float(v))
            else:
                try:
                    result[k] = float(v)
                except ValueError:
                    result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self.BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()

    def update(self, values: dict) -> None:
        """Validate and store several settings at once."""
        merged = {**self._raw_all_settings(), **values}
        validate_settings(merged)
        for key, value in values.items():
            if key in self.BOOL_KEYS:
                self.set_bool(key, bool(value))
            else:
                self.set_text(key, str(value))


class ProfileRepository(BaseRepository):
    """Repository for the single user profile row."""

    _COLUMNS = (
        "target_protein",
        "target_carbs",
        "target_fat",
        "target_calories",
        "sleep_goal_hours",
        "activity_level",
        "body_weight",
        "height_inches",
        "age",
        "biological_sex",
        "primary_goal",
        "goal_weight",
    )

    def save(self, profile: UserProfile) -> None:
        data = profile.to_dict()
        cols = ", ".join(self._COLUMNS)
        marks = ", ".join("?" for _ in self._COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in self._COLUMNS)
        self.execute(
            f"INSERT INTO profile (id, {cols}) VALUES (1, {marks}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates};",
            tuple(data[c] for c in self._COLUMNS),
        )

    def fetch(self) -> UserProfile:
        """Return the stored profile or a default one when none is saved."""
        rows = self.fetch_all(
            f"SELECT {', '.join(self._COLUMNS)} FROM profile WHERE id = 1;"
        )
        if not rows:
            return UserProfile()
        values = dict(zip(self._COLUMNS, rows[0]))
        return UserProfile(
            target_protein=float(values["target_protein"]),
            target_carbs=float(values["target_carbs"]),
            target_fat=float(values["target_fat"]),
            target_calories=float(values["target_calories"]),
            sleep_goal_hours=float(values["sleep_goal_hours"]),
            activity_level=ActivityLevel(values["activity_level"]),
            body_weight=values["body_weight"],
            height_inches=values["height_inches"],
            age=values["age"],
            biological_sex=(
                BiologicalSex(values["biological_sex"])
                if values["biological_sex"]
                else None
            ),
            primary_goal=FitnessGoal(values["primary_goal"]),
            goal_weight=values["goal_weight"],
        )


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    def create(self, date: str, name: str | None = None) -> int:
        return self.execute(
            "INSERT INTO workouts (date, name) VALUES (?, ?);",
            (_iso(date), name),
        )

    def complete(self, workout_id: int, timestamp: str | None = None) -> None:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        ts = timestamp or datetime.datetime.now().isoformat(timespec="seconds")
        self.execute(
            "UPDATE workouts SET completed = 1, completed_at = ? WHERE id = ?;",
            (ts, workout_id),
        )

    def delete(self, workout_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))

    def fetch_all_workouts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        completed_only: bool = False,
        descending: bool = True,
    ) -> List[Tuple[int, str, Optional[str], int]]:
        query = "SELECT id, date, name, completed FROM workouts"
        params: list[str] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("date >= ?")
            params.append(_iso(start_date))
        if end_date:
            where_clauses.append("date <= ?")
            params.append(_iso(end_date))
        if completed_only:
            where_clauses.append("completed = 1")
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        order = "DESC" if descending else "ASC"
        query += f" ORDER BY date {order}, id {order};"
        return self.fetch_all(query, tuple(params))

    def fetch_detail(self, workout_id: int) -> Tuple[int, str, Optional[str], int]:
        rows = self.fetch_all(
            "SELECT id, date, name, completed FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return rows[0]

    def fetch_workouts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        completed_only: bool = True,
    ) -> List[Workout]:
        """Return workouts with their sets, most recent first."""
        rows = self.fetch_all_workouts(start_date, end_date, completed_only)
        if not rows:
            return []
        ids = [r[0] for r in rows]
        marks = ", ".join("?" for _ in ids)
        set_rows = self.fetch_all(
            "SELECT s.id, s.reps, s.weight, s.rpe, s.timestamp, e.name, e.muscle_group, e.workout_id "
            "FROM sets s JOIN exercises e ON s.exercise_id = e.id "
            f"WHERE e.workout_id IN ({marks}) ORDER BY s.timestamp, s.id;",
            tuple(ids),
        )
        workouts = {
            wid: Workout(id=wid, date=_date(d), name=name, completed=bool(done))
            for wid, d, name, done in rows
        }
        for sid, reps, weight, rpe, ts, ex_name, group, wid in set_rows:
            workouts[wid].sets.append(
                WorkoutSet(
                    id=sid,
                    weight=float(weight),
                    reps=int(reps),
                    rpe=rpe,
                    timestamp=datetime.datetime.fromisoformat(ts),
                    exercise=ex_name,
                    muscle_group=group,
                    workout_id=wid,
                )
            )
        return [workouts[wid] for wid in ids]

    def fetch_workout(self, workout_id: int) -> Workout:
        wid, d, _name, _done = self.fetch_detail(workout_id)
        found = [w for w in self.fetch_workouts(d, d, completed_only=False) if w.id == wid]
        return found[0]

    def last_completed_on_or_before(self, day: str) -> datetime.date | None:
        rows = self.fetch_all(
            "SELECT date FROM workouts WHERE completed = 1 AND date <= ? "
            "ORDER BY date DESC LIMIT 1;",
            (_iso(day),),
        )
        return _date(rows[0][0]) if rows else None

    def completed_volumes(self) -> List[float]:
        """Return total volume of every completed workout."""
        rows = self.fetch_all(
            "SELECT w.id, COALESCE(SUM(CASE WHEN s.weight > 0 THEN s.reps * s.weight ELSE 0 END), 0) "
            "FROM workouts w "
            "LEFT JOIN exercises e ON e.workout_id = w.id "
            "LEFT JOIN sets s ON s.exercise_id = e.id "
            "WHERE w.completed = 1 GROUP BY w.id;"
        )
        return [float(v) for _wid, v in rows]

    def daily_volume(self, day: str) -> float:
        """Return the combined volume of completed workouts on ``day``."""
        rows = self.fetch_all(
            "SELECT COALESCE(SUM(CASE WHEN s.weight > 0 THEN s.reps * s.weight ELSE 0 END), 0) "
            "FROM workouts w "
            "JOIN exercises e ON e.workout_id = w.id "
            "JOIN sets s ON s.exercise_id = e.id "
            "WHERE w.completed = 1 AND w.date = ?;",
            (_iso(day),),
        )
        return float(rows[0][0] or 0.0)


class ExerciseRepository(BaseRepository):
    """Repository for exercises performed within a workout."""

    def add(
        self,
        workout_id: int,
        name: str,
        muscle_group: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        return self.execute(
            "INSERT INTO exercises (workout_id, name, muscle_group, note) VALUES (?, ?, ?, ?);",
            (workout_id, name.strip(), muscle_group.lower() if muscle_group else None, note),
        )

    def remove(self, exercise_id: int) -> int:
        """Delete an exercise with its sets and return the owning workout id."""
        rows = self.fetch_all(
            "SELECT workout_id FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))
        return int(rows[0][0])

    def fetch_for_workout(
        self, workout_id: int
    ) -> List[Tuple[int, str, Optional[str], Optional[str]]]:
        return self.fetch_all(
            "SELECT id, name, muscle_group, note FROM exercises WHERE workout_id = ? ORDER BY id;",
            (workout_id,),
        )


class SetRepository(BaseRepository):
    """Repository for sets table operations."""

    def add(
        self,
        exercise_id: int,
        reps: int,
        weight: float,
        rpe: Optional[int] = None,
        timestamp: Optional[str] = None,
    ) -> int:
        if reps < 1:
            raise ValueError("reps must be at least 1")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        if rpe is not None and not 1 <= rpe <= 10:
            raise ValueError("rpe must be between 1 and 10")
        rows = self.fetch_all("SELECT id FROM exercises WHERE id = ?;", (exercise_id,))
        if not rows:
            raise ValueError("exercise not found")
        ts = _timestamp(timestamp)
        return self.execute(
            "INSERT INTO sets (exercise_id, reps, weight, rpe, timestamp) VALUES (?, ?, ?, ?, ?);",
            (exercise_id, reps, weight, rpe, ts),
        )

    def remove(self, set_id: int) -> int:
        """Delete a set and return the id of the workout it belonged to."""
        rows = self.fetch_all(
            "SELECT e.workout_id FROM sets s JOIN exercises e ON s.exercise_id = e.id "
            "WHERE s.id = ?;",
            (set_id,),
        )
        if not rows:
            raise ValueError("set not found")
        self.execute("DELETE FROM sets WHERE id = ?;", (set_id,))
        return int(rows[0][0])

    def fetch_for_exercise(
        self, exercise_id: int
    ) -> List[Tuple[int, int, float, Optional[int], str]]:
        return self.fetch_all(
            "SELECT id, reps, weight, rpe, timestamp FROM sets WHERE exercise_id = ? ORDER BY id;",
            (exercise_id,),
        )

    def fetch_range(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        descending: bool = True,
    ) -> List[WorkoutSet]:
        """Return sets logged within a timestamp range with exercise and workout references."""
        query = (
            "SELECT s.id, s.reps, s.weight, s.rpe, s.timestamp, e.name, e.muscle_group, e.workout_id "
            "FROM sets s JOIN exercises e ON s.exercise_id = e.id WHERE 1=1"
        )
        params: list[str] = []
        if start:
            query += " AND s.timestamp >= ?"
            params.append(_iso(start))
        if end:
            query += " AND s.timestamp <= ?"
            params.append(_iso(end))
        order = "DESC" if descending else "ASC"
        query += f" ORDER BY s.timestamp {order}, s.id {order};"
        rows = self.fetch_all(query, tuple(params))
        return [
            WorkoutSet(
                id=sid,
                weight=float(weight),
                reps=int(reps),
                rpe=rpe,
                timestamp=datetime.datetime.fromisoformat(ts),
                exercise=name,
                muscle_group=group,
                workout_id=wid,
            )
            for sid, reps, weight, rpe, ts, name, group, wid in rows
        ]


class DailySummaryRepository(BaseRepository):
    """Repository for per-day nutrition, sleep and training totals."""

    _SELECT = (
        "SELECT date, total_calories, total_protein, total_carbs, total_fat, "
        "sleep_hours, recovery_score, total_workout_volume FROM daily_summaries"
    )

    @staticmethod
    def _row_to_summary(row: Tuple) -> DailySummary:
        d, cal, pro, carbs, fat, sleep, score, vol = row
        return DailySummary(
            date=_date(d),
            total_calories=float(cal),
            total_protein=float(pro),
            total_carbs=float(carbs),
            total_fat=float(fat),
            sleep_hours=float(sleep) if sleep is not None else None,
            recovery_score=float(score),
            total_workout_volume=float(vol),
        )

    def ensure(self, day: str) -> None:
        """Create the summary row for ``day`` if it does not exist yet."""
        self.execute(
            "INSERT OR IGNORE INTO daily_summaries (date) VALUES (?);", (_iso(day),)
        )

    def fetch(self, day: str) -> DailySummary | None:
        rows = self.fetch_all(self._SELECT + " WHERE date = ?;", (_iso(day),))
        return self._row_to_summary(rows[0]) if rows else None

    def fetch_range(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        descending: bool = False,
    ) -> List[DailySummary]:
        query = self._SELECT + " WHERE 1=1"
        params: list[str] = []
        if start_date:
            query += " AND date >= ?"
            params.append(_iso(start_date))
        if end_date:
            query += " AND date <= ?"
            params.append(_iso(end_date))
        query += " ORDER BY date DESC;" if descending else " ORDER BY date;"
        return [self._row_to_summary(r) for r in self.fetch_all(query, tuple(params))]

    def add_nutrition(
        self,
        day: str,
        calories: float = 0.0,
        protein: float = 0.0,
        carbs: float = 0.0,
        fat: float = 0.0,
    ) -> None:
        if min(calories, protein, carbs, fat) < 0:
            raise ValueError("nutrition values must be non-negative")
        self.ensure(day)
        self.execute(
            "UPDATE daily_summaries SET total_calories = total_calories + ?, "
            "total_protein = total_protein + ?, total_carbs = total_carbs + ?, "
            "total_fat = total_fat + ? WHERE date = ?;",
            (calories, protein, carbs, fat, _iso(day)),
        )

    def set_sleep(self, day: str, hours: float | None) -> None:
        if hours is not None and not 0 <= hours <= 24:
            raise ValueError("sleep hours must be between 0 and 24")
        self.ensure(day)
        self.execute(
            "UPDATE daily_summaries SET sleep_hours = ? WHERE date = ?;",
            (hours, _iso(day)),
        )

    def set_workout_volume(self, day: str, volume: float) -> None:
        self.ensure(day)
        self.execute(
            "UPDATE daily_summaries SET total_workout_volume = ? WHERE date = ?;",
            (max(volume, 0.0), _iso(day)),
        )

    def set_recovery_score(self, day: str, score: float) -> None:
        rows = self.fetch_all(
            "SELECT date FROM daily_summaries WHERE date = ?;", (_iso(day),)
        )
        if not rows:
            raise ValueError("summary not found")
        self.execute(
            "UPDATE daily_summaries SET recovery_score = ? WHERE date = ?;",
            (score, _iso(day)),
        )


class BodyWeightRepository(BaseRepository):
    """Repository for body weight logs."""

    def log(self, date: str, weight: float) -> int:
        if weight <= 0:
            raise ValueError("weight must be positive")
        return self.execute(
            "INSERT INTO body_weight_logs (date, weight) VALUES (?, ?);",
            (_iso(date), weight),
        )

    def fetch_history(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> list[tuple[int, str, float]]:
        query = "SELECT id, date, weight FROM body_weight_logs WHERE 1=1"
        params: list[str] = []
        if start_date:
            query += " AND date >= ?"
            params.append(_iso(start_date))
        if end_date:
            query += " AND date <= ?"
            params.append(_iso(end_date))
        query += " ORDER BY date, id;"
        rows = self.fetch_all(query, tuple(params))
        return [(int(r[0]), r[1], float(r[2])) for r in rows]

    def delete(self, entry_id: int) -> None:
        rows = self.fetch_all(
            "SELECT id FROM body_weight_logs WHERE id = ?;",
            (entry_id,),
        )
        if not rows:
            raise ValueError("log not found")
        self.execute("DELETE FROM body_weight_logs WHERE id = ?;", (entry_id,))


class StreakRepository(BaseRepository):
    """Repository for the persisted streak state."""

    _COLUMNS = Database._TABLE_DEFINITIONS["streaks"][1][1:]

    @staticmethod
    def _to_row(state: StreakState) -> tuple:
        w, n = state.workout, state.nutrition
        return (
            w.current,
            w.longest,
            _iso(w.last_logged_day),
            _iso(w.start_day),
            w.total_days,
            n.current,
            n.longest,
            _iso(n.last_logged_day),
            _iso(n.start_day),
            n.total_days,
            state.grace_days_remaining,
            1 if state.grace_active else 0,
            state.combined_current,
            state.combined_longest,
            _iso(state.created_on),
        )

    @staticmethod
    def _from_row(row: Tuple) -> StreakState:
        (
            w_cur, w_long, w_last, w_start, w_total,
            n_cur, n_long, n_last, n_start, n_total,
            grace, grace_active, c_cur, c_long, created,
        ) = row
        return StreakState(
            workout=StreamStreak(w_cur, w_long, _date(w_last), _date(w_start), w_total),
            nutrition=StreamStreak(n_cur, n_long, _date(n_last), _date(n_start), n_total),
            grace_days_remaining=int(grace),
            grace_active=bool(grace_active),
            combined_current=int(c_cur),
            combined_longest=int(c_long),
            created_on=_date(created),
        )

    def _read(self, conn: sqlite3.Connection, today: datetime.date) -> StreakState:
        row = conn.execute(
            f"SELECT {', '.join(self._COLUMNS)} FROM streaks WHERE id = 1;"
        ).fetchone()
        if row is None:
            return StreakState(created_on=today)
        return self._from_row(row)

    def _write(self, conn: sqlite3.Connection, state: StreakState) -> None:
        cols = ", ".join(self._COLUMNS)
        marks = ", ".join("?" for _ in self._COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in self._COLUMNS)
        conn.execute(
            f"INSERT INTO streaks (id, {cols}) VALUES (1, {marks}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates};",
            self._to_row(state),
        )

    def fetch(self, today: datetime.date | None = None) -> StreakState:
        with self._connection() as conn:
            return self._read(conn, today or datetime.date.today())

    def update(
        self,
        mutate: Callable[[StreakState], None],
        today: datetime.date | None = None,
    ) -> StreakState:
        """Apply ``mutate`` to the stored state inside one write transaction."""
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            state = self._read(conn, today or datetime.date.today())
            mutate(state)
            self._write(conn, state)
            return state
