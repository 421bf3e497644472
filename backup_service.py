from __future__ import annotations
import datetime
import json
import logging
import os
from typing import Callable, Optional

from backup_schema import BACKUP_VERSION, BackupDocument, BackupValidationError, validate_backup
from db import (
    Database,
    ExerciseRepository,
    RoutineExerciseRepository,
    RoutineRepository,
    SetRepository,
    WorkoutRepository,
)
from tools import DateTools

logger = logging.getLogger(__name__)

ShareCallback = Callable[[str], None]
PickCallback = Callable[[], Optional[str]]


class BackupService:
    """Exports, restores and wipes the complete dataset."""

    def __init__(
        self,
        db: Database,
        exercise_repo: ExerciseRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        routine_repo: RoutineRepository,
        routine_exercise_repo: RoutineExerciseRepository,
        export_dir: str = ".",
        filename: str = "iron_vault_backup.json",
    ) -> None:
        self.db = db
        self.exercises = exercise_repo
        self.workouts = workout_repo
        self.sets = set_repo
        self.routines = routine_repo
        self.routine_exercises = routine_exercise_repo
        self.export_dir = export_dir
        self.filename = filename

    def _repositories(self) -> list:
        # children before parents
        return [
            self.sets,
            self.routine_exercises,
            self.workouts,
            self.routines,
            self.exercises,
        ]

    def snapshot(self, exported_at: datetime.datetime | None = None) -> dict:
        """Return the whole dataset as a backup document mapping."""
        with self.db.transaction():
            document = BackupDocument(
                version=BACKUP_VERSION,
                exported_at=DateTools.utc_timestamp(exported_at),
                exercises=self.exercises.fetch_records(),
                workouts=self.workouts.fetch_records(),
                sets=self.sets.fetch_records(),
                routines=self.routines.fetch_records(),
                routine_exercises=self.routine_exercises.fetch_records(),
            )
        return document.model_dump(by_alias=True)

    def export(self, share: ShareCallback | None = None) -> str:
        """Write the backup file and hand its path to ``share``.

        Errors are not caught here; callers report them.
        """
        data = self.snapshot()
        path = os.path.join(self.export_dir, self.filename)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        logger.info(
            "Exported %d exercises, %d workouts, %d sets to %s",
            len(data["exercises"]),
            len(data["workouts"]),
            len(data["sets"]),
            path,
        )
        if share is not None:
            share(path)
        return path

    def parse(self, content: str) -> BackupDocument:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise BackupValidationError(f"Invalid backup file: {exc}") from exc
        document = validate_backup(data)
        if document.version > BACKUP_VERSION:
            logger.warning(
                "Backup version %s is newer than supported version %s",
                document.version,
                BACKUP_VERSION,
            )
        return document

    def restore(self, document: BackupDocument) -> None:
        """Replace every stored row with the contents of ``document``.

        Ids are preserved so set and routine references stay intact.
        Routines are cleared even when the document carries none.
        """
        with self.db.transaction():
            for repo in self._repositories():
                repo.delete_all()
            self.exercises.insert_records(r.model_dump() for r in document.exercises)
            self.workouts.insert_records(r.model_dump() for r in document.workouts)
            self.sets.insert_records(r.model_dump() for r in document.sets)
            self.routines.insert_records(r.model_dump() for r in document.routines or [])
            self.routine_exercises.insert_records(
                r.model_dump() for r in document.routine_exercises or []
            )
        logger.info(
            "Restored %d exercises, %d workouts, %d sets",
            len(document.exercises),
            len(document.workouts),
            len(document.sets),
        )

    def import_content(self, content: str) -> None:
        self.restore(self.parse(content))

    def import_from(self, pick: PickCallback) -> bool:
        """Restore from the text returned by ``pick``.

        Returns ``False`` when the pick was cancelled.
        """
        content = pick()
        if content is None:
            return False
        self.import_content(content)
        return True

    def clear(self) -> None:
        """Delete all data, then re-seed the standard exercises."""
        with self.db.transaction():
            for repo in self._repositories():
                repo.delete_all()
        logger.info("Cleared all workout data")
        self.db.initialize()
