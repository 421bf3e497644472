import argparse
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from backup_schema import BackupValidationError
from config import APP_VERSION, YamlConfig
from db import BODY_PART_FILTERS, StorageError
from gym_api import GymAPI


def _format_weight(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value:g}"


def list_workouts(api: GymAPI) -> None:
    for item in api.list_workouts():
        names = ", ".join(item["exercise_names"]) or "no exercises"
        parts = ", ".join(item["body_parts"])
        line = f"{item['id']:>4}  {item['date']}  volume {_format_weight(item['total_volume'])} kg  {names}"
        if parts:
            line += f"  [{parts}]"
        if item["note"]:
            line += f"  note: {item['note']}"
        print(line)


def list_exercises(api: GymAPI, body_part: Optional[str], query: Optional[str]) -> None:
    for ex in api.get_exercises(body_part, query):
        print(f"{ex['id']:>4}  {ex['name']}  ({ex['target_body_part'] or '-'})")


def show_sets(api: GymAPI, workout_id: int) -> None:
    for s in api.get_sets_for_workout(workout_id):
        print(f"{s['id']:>4}  {s['exercise_name']}  {_format_weight(s['weight_kg'])} kg x {s['reps']}")


def show_last_set(api: GymAPI, exercise_id: int) -> None:
    last = api.get_last_set_for_exercise(exercise_id)
    if last is None:
        print("No sets logged for this exercise")
        return
    print(f"Last: {_format_weight(last['weight_kg'])} kg x {last['reps']} ({last['date']})")


def show_bests(api: GymAPI) -> None:
    for pb in api.get_personal_bests():
        print(f"{pb['exercise_name']}: {_format_weight(pb['max_weight'])} kg x {pb['best_reps']}")


def show_progress(api: GymAPI, exercise_id: int) -> None:
    for point in api.get_exercise_progress(exercise_id):
        print(
            f"{point['date']}  {_format_weight(point['max_weight'])} kg x {point['reps']}"
            f"  est. 1RM {point['one_rep_max']} kg"
        )


def list_routines(api: GymAPI) -> None:
    for routine in api.get_routines():
        exercises = api.get_routine_exercises(routine["id"])
        names = ", ".join(ex["exercise_name"] or "?" for ex in exercises)
        print(f"{routine['id']:>4}  {routine['name']}: {names}")


def export_backup(api: GymAPI) -> int:
    try:
        path = api.export_data(lambda p: print(f"Backup written to {p}"))
    except (OSError, StorageError, ValidationError) as e:
        print(f"Export failed: {e}", file=sys.stderr)
        return 1
    return 0 if path else 1


def import_backup(api: GymAPI, src: str) -> int:
    def pick() -> str:
        with open(src, "r", encoding="utf-8") as f:
            return f.read()

    try:
        restored = api.import_from(pick)
    except BackupValidationError as e:
        print(str(e), file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Could not read {src}: {e}", file=sys.stderr)
        return 1
    if not restored:
        print("Import failed", file=sys.stderr)
        return 1
    print("Database restored")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="IronVault workout log")
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("--yaml", default="settings.yaml", help="settings file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init")
    sub.add_parser("workouts")
    sub.add_parser("cleanup")

    exs = sub.add_parser("exercises")
    exs.add_argument("--body-part", choices=BODY_PART_FILTERS, default=None)
    exs.add_argument("--search", default=None)

    add_ex = sub.add_parser("add-exercise")
    add_ex.add_argument("name")
    add_ex.add_argument("--body-part", default="")

    sub.add_parser("start")

    past = sub.add_parser("start-past")
    past.add_argument("year", type=int)
    past.add_argument("month", type=int)
    past.add_argument("day", type=int)

    fin = sub.add_parser("finish")
    fin.add_argument("workout_id", type=int)

    delw = sub.add_parser("delete-workout")
    delw.add_argument("workout_id", type=int)

    note = sub.add_parser("note")
    note.add_argument("workout_id", type=int)
    note.add_argument("text")

    add = sub.add_parser("add-set")
    add.add_argument("workout_id", type=int)
    add.add_argument("exercise_id", type=int)
    add.add_argument("weight", type=float)
    add.add_argument("reps", type=int)

    upd = sub.add_parser("update-set")
    upd.add_argument("set_id", type=int)
    upd.add_argument("weight", type=float)
    upd.add_argument("reps", type=int)

    dele = sub.add_parser("delete-set")
    dele.add_argument("set_id", type=int)

    sets = sub.add_parser("sets")
    sets.add_argument("workout_id", type=int)

    last = sub.add_parser("last-set")
    last.add_argument("exercise_id", type=int)

    sub.add_parser("bests")

    prog = sub.add_parser("progress")
    prog.add_argument("exercise_id", type=int)

    rcreate = sub.add_parser("routine-create")
    rcreate.add_argument("workout_id", type=int)
    rcreate.add_argument("name")

    rapply = sub.add_parser("routine-apply")
    rapply.add_argument("routine_id", type=int)
    rapply.add_argument("workout_id", type=int)

    sub.add_parser("routines")

    exp = sub.add_parser("export")
    exp.add_argument("--out", default=None, help="directory for the backup file")

    imp = sub.add_parser("import")
    imp.add_argument("--in", dest="src", required=True)

    sub.add_parser("clear")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = YamlConfig(args.yaml).settings()
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    export_dir = getattr(args, "out", None)
    with GymAPI(db_path=args.db, yaml_path=args.yaml, export_dir=export_dir) as api:
        try:
            return _dispatch(api, args)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1


def _dispatch(api: GymAPI, args: argparse.Namespace) -> int:
    if args.cmd == "init":
        print(f"Database ready at {api.db.path}")
    elif args.cmd == "workouts":
        list_workouts(api)
    elif args.cmd == "cleanup":
        print(f"Removed {api.cleanup_empty_workouts()} empty workouts")
    elif args.cmd == "exercises":
        list_exercises(api, args.body_part, args.search)
    elif args.cmd == "add-exercise":
        print(api.add_exercise(args.name, args.body_part))
    elif args.cmd == "start":
        print(api.start_workout())
    elif args.cmd == "start-past":
        print(api.start_past_workout(args.year, args.month, args.day))
    elif args.cmd == "finish":
        if api.finish_workout(args.workout_id):
            print("Empty workout discarded")
    elif args.cmd == "delete-workout":
        api.delete_workout(args.workout_id)
    elif args.cmd == "note":
        api.set_workout_note(args.workout_id, args.text)
    elif args.cmd == "add-set":
        print(api.add_set(args.workout_id, args.exercise_id, args.weight, args.reps))
    elif args.cmd == "update-set":
        api.update_set(args.set_id, args.weight, args.reps)
    elif args.cmd == "delete-set":
        api.delete_set(args.set_id)
    elif args.cmd == "sets":
        show_sets(api, args.workout_id)
    elif args.cmd == "last-set":
        show_last_set(api, args.exercise_id)
    elif args.cmd == "bests":
        show_bests(api)
    elif args.cmd == "progress":
        show_progress(api, args.exercise_id)
    elif args.cmd == "routine-create":
        print(api.create_routine_from_workout(args.name, args.workout_id))
    elif args.cmd == "routine-apply":
        api.apply_routine_to_workout(args.workout_id, args.routine_id)
    elif args.cmd == "routines":
        list_routines(api)
    elif args.cmd == "export":
        return export_backup(api)
    elif args.cmd == "import":
        return import_backup(api, args.src)
    elif args.cmd == "clear":
        if api.clear_data():
            print("Database cleared")
    return 1 if api.last_error is not None else 0


if __name__ == "__main__":
    sys.exit(main())
