from __future__ import annotations
import datetime
import logging
import threading
from dataclasses import dataclass

from db import SettingsRepository, StreakRepository
from models import StreakState, Stream, StreamStreak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakMilestone:
    days: int
    name: str
    description: str

    def to_dict(self) -> dict:
        return {"days": self.days, "name": self.name, "description": self.description}


MILESTONES: tuple[StreakMilestone, ...] = (
    StreakMilestone(3, "Getting Started", "3 days in a row!"),
    StreakMilestone(7, "One Week", "A full week of consistency!"),
    StreakMilestone(14, "Two Weeks", "Two weeks strong!"),
    StreakMilestone(21, "Habit Forming", "21 days - building a habit!"),
    StreakMilestone(30, "One Month", "A whole month! Incredible!"),
    StreakMilestone(60, "Two Months", "60 days of dedication!"),
    StreakMilestone(90, "Quarter Master", "90 days - you're unstoppable!"),
    StreakMilestone(180, "Half Year Hero", "6 months of consistency!"),
    StreakMilestone(365, "Yearly Legend", "A full year! Legendary!"),
)


def current_milestone(streak: int) -> StreakMilestone | None:
    """Return the highest milestone reached by ``streak``."""
    reached = [m for m in MILESTONES if m.days <= streak]
    return reached[-1] if reached else None


def next_milestone(streak: int) -> StreakMilestone | None:
    """Return the lowest milestone above ``streak``."""
    for m in MILESTONES:
        if m.days > streak:
            return m
    return None


def days_to_next(streak: int) -> int | None:
    nxt = next_milestone(streak)
    if nxt is None:
        return None
    return nxt.days - streak


def _is_broken(gap: int, grace_days_remaining: int) -> bool:
    """Return True when a gap of ``gap`` days can no longer continue a streak."""
    return gap > 2 or (gap == 2 and grace_days_remaining <= 0)


def _update_combined(state: StreakState) -> None:
    state.combined_current = min(state.workout.current, state.nutrition.current)
    state.combined_longest = max(state.combined_longest, state.combined_current)


def record_activity(state: StreakState, stream: Stream | str, today: datetime.date) -> bool:
    """Record that ``stream`` was logged on ``today``.

    Returns False when the day was already recorded for that stream.
    """
    streak = state.stream(stream)
    last = streak.last_logged_day
    if last == today:
        return False

    if last is None:
        streak.current = 1
        streak.start_day = today
    else:
        gap = (today - last).days
        if gap <= 0:
            # logging for a day before the last recorded one leaves the streak alone
            return False
        if gap == 1:
            streak.current += 1
        elif not _is_broken(gap, state.grace_days_remaining):
            state.grace_days_remaining -= 1
            state.grace_active = True
            streak.current += 1
            logger.debug("grace day consumed by %s streak", Stream(stream).value)
        else:
            logger.debug(
                "%s streak reset after %d day gap", Stream(stream).value, gap
            )
            streak.current = 1
            streak.start_day = today
            state.grace_days_remaining = 1
            state.grace_active = False
        if streak.start_day is None:
            streak.start_day = today

    streak.last_logged_day = today
    streak.total_days += 1
    streak.longest = max(streak.longest, streak.current)
    _update_combined(state)
    return True


def reconcile_on_open(state: StreakState, today: datetime.date) -> None:
    """Zero out streaks whose gap can no longer be forgiven."""
    for stream in Stream:
        streak = state.stream(stream)
        if streak.last_logged_day is None:
            continue
        gap = (today - streak.last_logged_day).days
        if _is_broken(gap, state.grace_days_remaining):
            streak.current = 0
            streak.start_day = None
    _update_combined(state)


def consistency(streak: StreamStreak, created_on: datetime.date, today: datetime.date) -> float:
    """Percentage of days since ``created_on`` with activity logged."""
    elapsed = (today - created_on).days
    if elapsed <= 0:
        return 0.0
    return round(streak.total_days / elapsed * 100, 2)


class StreakService:
    """Persist streak updates for workout and nutrition logging."""

    _lock = threading.Lock()

    def __init__(
        self,
        repo: StreakRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.repo = repo
        self.settings = settings_repo

    def is_enabled(self) -> bool:
        if self.settings is None:
            return True
        return self.settings.get_bool("streaks_enabled", True)

    def state(self, today: datetime.date | None = None) -> StreakState:
        return self.repo.fetch(today)

    def record(self, stream: Stream | str, today: datetime.date | None = None) -> StreakState:
        day = today or datetime.date.today()
        if not self.is_enabled():
            return self.repo.fetch(day)
        with self._lock:
            return self.repo.update(lambda s: record_activity(s, stream, day), day)

    def reconcile(self, today: datetime.date | None = None) -> StreakState:
        day = today or datetime.date.today()
        if not self.is_enabled():
            return self.repo.fetch(day)
        with self._lock:
            return self.repo.update(lambda s: reconcile_on_open(s, day), day)

    def overview(self, today: datetime.date | None = None) -> dict:
        """Return the streak state with milestones and consistency."""
        day = today or datetime.date.today()
        state = self.repo.fetch(day)
        result = state.to_dict()
        for stream in Stream:
            streak = state.stream(stream)
            cur = current_milestone(streak.current)
            nxt = next_milestone(streak.current)
            result[stream.value].update(
                {
                    "milestone": cur.to_dict() if cur else None,
                    "next_milestone": nxt.to_dict() if nxt else None,
                    "days_to_next": days_to_next(streak.current),
                    "consistency": consistency(streak, state.created_on, day),
                }
            )
        return result
