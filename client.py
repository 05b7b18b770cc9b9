import requests
from typing import Optional


class InsightsClient:
    """Simple REST client for the IronLog API.

    ``session`` defaults to the ``requests`` module; any object with
    requests-style ``get`` and ``post`` methods works.
    """

    def __init__(self, base_url: str = "http://localhost:8000", session=None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests

    @staticmethod
    def _params(params: dict) -> dict:
        return {k: v for k, v in params.items() if v is not None}

    def _get(self, path: str, **params):
        resp = self.session.get(f"{self.base_url}{path}", params=self._params(params))
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, **params):
        resp = self.session.post(f"{self.base_url}{path}", params=self._params(params))
        resp.raise_for_status()
        return resp.json()

    def create_workout(self, date: str, name: Optional[str] = None) -> int:
        return self._post("/workouts", date=date, name=name)["id"]

    def list_workouts(self, **params: str):
        return self._get("/workouts", **params)

    def add_exercise(
        self, workout_id: int, name: str, muscle_group: Optional[str] = None
    ) -> int:
        return self._post(
            f"/workouts/{workout_id}/exercises", name=name, muscle_group=muscle_group
        )["id"]

    def add_set(
        self, exercise_id: int, reps: int, weight: float, rpe: Optional[int] = None
    ) -> int:
        return self._post(
            f"/exercises/{exercise_id}/sets", reps=reps, weight=weight, rpe=rpe
        )["id"]

    def complete_workout(self, workout_id: int) -> dict:
        return self._post(f"/workouts/{workout_id}/complete")

    def log_nutrition(self, date: str, **macros: float) -> dict:
        return self._post("/nutrition", date=date, **macros)

    def log_sleep(self, date: str, hours: float) -> dict:
        return self._post("/sleep", date=date, hours=hours)

    def streaks(self, date: Optional[str] = None) -> dict:
        return self._get("/streaks", date=date)

    def recovery_score(self, date: Optional[str] = None) -> dict:
        return self._get("/recovery/score", date=date)

    def suggestions(self, date: Optional[str] = None, sort: bool = False) -> list:
        return self._get("/suggestions", date=date, sort=sort)

    def correlation(self, days: Optional[int] = None) -> dict:
        return self._get("/stats/correlation", days=days)
