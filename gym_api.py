import logging
from typing import Callable, List, Optional, TypeVar

from backup_service import BackupService, PickCallback, ShareCallback
from config import YamlConfig
from db import (
    Database,
    ExerciseRepository,
    RoutineExerciseRepository,
    RoutineRepository,
    SetRepository,
    StorageError,
    WorkoutRepository,
)
from routine_service import RoutineService
from session_service import SessionService
from stats_service import StatisticsService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GymAPI:
    """Operations offered to front ends, backed by one storage session.

    Storage failures on reads and ordinary mutations are logged and turn
    into a neutral return value (empty list, ``None`` or ``False``); the
    failure itself is kept in :attr:`last_error` until the next call.
    Exporting is the exception: its errors always reach the caller.
    Invalid input raises ``ValueError`` before anything is stored.
    """

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
        *,
        export_dir: str | None = None,
        share: ShareCallback | None = None,
    ) -> None:
        self.config = YamlConfig(yaml_path)
        self.settings = self.config.settings()
        self.db = Database(db_path or self.settings.db_path)
        self.exercises = ExerciseRepository(self.db)
        self.workouts = WorkoutRepository(self.db)
        self.sets = SetRepository(self.db)
        self.routines = RoutineRepository(self.db)
        self.routine_exercises = RoutineExerciseRepository(self.db)
        self.statistics = StatisticsService(self.workouts, self.sets)
        self.sessions = SessionService(self.workouts)
        self.routine_service = RoutineService(
            self.db,
            self.routines,
            self.routine_exercises,
            self.workouts,
            self.sets,
        )
        self.backup = BackupService(
            self.db,
            self.exercises,
            self.workouts,
            self.sets,
            self.routines,
            self.routine_exercises,
            export_dir=export_dir or self.settings.export_dir,
            filename=self.settings.backup_filename,
        )
        self.share = share
        self.last_error: Optional[StorageError] = None

    def __enter__(self) -> "GymAPI":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.db.close()

    def _guard(self, default: T, func: Callable[..., T], *args, **kwargs) -> T:
        self.last_error = None
        try:
            return func(*args, **kwargs)
        except StorageError as exc:
            logger.exception("%s failed", func.__qualname__)
            self.last_error = exc
            return default

    def _ok(self, func: Callable[..., object], *args) -> bool:
        self.last_error = None
        try:
            func(*args)
        except StorageError as exc:
            logger.exception("%s failed", func.__qualname__)
            self.last_error = exc
            return False
        return True

    # Workouts and sessions

    def list_workouts(self) -> List[dict]:
        """Prune abandoned workouts, then return summaries newest first."""
        self._guard(0, self.sessions.cleanup)
        if self.last_error is not None:
            return []
        return self._guard([], self.statistics.workout_summaries)

    def cleanup_empty_workouts(self) -> int:
        return self._guard(0, self.sessions.cleanup)

    def get_latest_workout(self) -> Optional[dict]:
        row = self._guard(None, self.workouts.fetch_latest)
        if row is None:
            return None
        wid, date, note = row
        return {"id": wid, "date": date, "note": note}

    def start_workout(self) -> Optional[int]:
        """Resume today's workout or start a new one."""
        result = self._guard(None, self.sessions.start_today)
        return result[0] if result else None

    def start_past_workout(self, year: int, month: int, day: int) -> Optional[int]:
        return self._guard(None, self.sessions.start_past, year, month, day)

    def finish_workout(self, workout_id: int) -> bool:
        return self._guard(False, self.sessions.finish, workout_id)

    def delete_workout(self, workout_id: int) -> bool:
        return self._ok(self.workouts.delete, workout_id)

    def set_workout_note(self, workout_id: int, note: str | None) -> bool:
        return self._ok(self.workouts.set_note, workout_id, note)

    # Exercises and sets

    def get_exercises(
        self, body_part: str | None = None, query: str | None = None
    ) -> List[dict]:
        rows = self._guard([], self.exercises.fetch_all_exercises, body_part, query)
        return [
            {"id": eid, "name": name, "target_body_part": part}
            for eid, name, part in rows
        ]

    def add_exercise(self, name: str, target_body_part: str = "") -> Optional[int]:
        return self._guard(None, self.exercises.add, name, target_body_part)

    def add_set(
        self, workout_id: int, exercise_id: int, weight_kg: float, reps: int
    ) -> Optional[int]:
        return self._guard(
            None, self.sets.add, workout_id, exercise_id, weight_kg, reps
        )

    def update_set(self, set_id: int, weight_kg: float, reps: int) -> bool:
        return self._ok(self.sets.update, set_id, weight_kg, reps)

    def delete_set(self, set_id: int) -> bool:
        return self._ok(self.sets.remove, set_id)

    def get_sets_for_workout(self, workout_id: int) -> List[dict]:
        return self._guard([], self.statistics.workout_sets, workout_id)

    def get_last_set_for_exercise(self, exercise_id: int) -> Optional[dict]:
        return self._guard(None, self.statistics.last_set, exercise_id)

    # Statistics

    def get_personal_bests(self) -> List[dict]:
        return self._guard([], self.statistics.personal_bests)

    def get_exercise_progress(self, exercise_id: int) -> List[dict]:
        return self._guard([], self.statistics.exercise_progress, exercise_id)

    # Routines

    def create_routine_from_workout(self, name: str, workout_id: int) -> Optional[int]:
        return self._guard(
            None, self.routine_service.create_from_workout, name, workout_id
        )

    def apply_routine_to_workout(self, workout_id: int, routine_id: int) -> List[int]:
        return self._guard(
            [], self.routine_service.apply_to_workout, routine_id, workout_id
        )

    def get_routines(self) -> List[dict]:
        return self._guard([], self.routine_service.list_routines)

    def get_routine_exercises(self, routine_id: int) -> List[dict]:
        return self._guard([], self.routine_service.routine_exercises_for, routine_id)

    def delete_routine(self, routine_id: int) -> bool:
        return self._ok(self.routine_service.delete_routine, routine_id)

    # Backup and restore

    def export_data(self, share: ShareCallback | None = None) -> str:
        """Write a backup file and share it; failures propagate."""
        self.last_error = None
        return self.backup.export(share or self.share)

    def import_data(self, content: str) -> bool:
        """Replace all data with a backup document given as JSON text.

        An invalid document raises ``BackupValidationError`` and changes nothing.
        """
        return self._ok(self.backup.import_content, content)

    def import_from(self, pick: PickCallback) -> bool:
        return self._guard(False, self.backup.import_from, pick)

    def clear_data(self) -> bool:
        return self._ok(self.backup.clear)
