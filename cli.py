import argparse
import datetime
import json
import logging
import shutil

from algorithms.weight_converter import WeightConverter
from models import Stream
from rest_api import InsightsAPI
from suggestion_service import sort_by_priority

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)
    logger.info("backed up %s to %s", db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)
    logger.info("restored %s from %s", db_path, backup_path)


def demo_data(db_path: str, yaml_path: str, days: int = 14) -> None:
    """Populate the database with two weeks of demo logs if empty."""
    api = InsightsAPI(db_path=db_path, yaml_path=yaml_path)
    if api.workouts.fetch_all_workouts():
        print("Database already contains workouts")
        return
    today = datetime.date.today()
    for offset in range(days - 1, -1, -1):
        day = today - datetime.timedelta(days=offset)
        iso = day.isoformat()
        api.summaries.add_nutrition(iso, 2100.0, 140.0 + offset, 180.0, 60.0)
        api.summaries.set_sleep(iso, 6.0 + (offset % 3))
        api.streaks.record(Stream.NUTRITION, day)
        if offset % 2:
            continue
        wid = api.workouts.create(iso, "Lower" if offset % 4 else "Upper")
        if offset % 4:
            ex_id = api.exercises.add(wid, "Back Squat", "quads")
        else:
            ex_id = api.exercises.add(wid, "Bench Press", "chest")
        for n in range(3):
            ts = datetime.datetime.combine(day, datetime.time(18, n)).isoformat()
            api.sets.add(ex_id, 8, 135.0, 8, ts)
        api.workouts.complete(wid)
        api.summaries.set_workout_volume(iso, api.workouts.daily_volume(iso))
        api.streaks.record(Stream.WORKOUT, day)
        api.recovery.score_for_day(day)
    print("Demo data inserted")


def print_suggestions(db_path: str, yaml_path: str) -> None:
    api = InsightsAPI(db_path=db_path, yaml_path=yaml_path)
    items = sort_by_priority(api.suggestions.generate_suggestions())
    if not items:
        print("No suggestions today")
    for s in items:
        print(f"[{s.priority.value}] {s.title}: {s.message}")


def print_streaks(db_path: str, yaml_path: str) -> None:
    api = InsightsAPI(db_path=db_path, yaml_path=yaml_path)
    api.streaks.reconcile()
    print(json.dumps(api.streaks.overview(), indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="ironlog.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="ironlog.db")

    for name in ("demo", "suggestions", "streaks"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--db", default="ironlog.db")
        cmd.add_argument("--yaml", default="settings.yaml")

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "suggestions":
        print_suggestions(args.db, args.yaml)
    elif args.cmd == "streaks":
        print_streaks(args.db, args.yaml)
    elif args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
