from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

BACKUP_VERSION = 1


class BackupValidationError(ValueError):
    """Raised when a backup document cannot be restored."""


class ExerciseRecord(BaseModel):
    id: int
    name: str
    target_body_part: Optional[str] = None


class WorkoutRecord(BaseModel):
    id: int
    date: str
    note: Optional[str] = None


class SetRecord(BaseModel):
    id: int
    workout_id: Optional[int] = None
    exercise_id: Optional[int] = None
    weight_kg: Optional[float] = None
    reps: Optional[int] = None


class RoutineRecord(BaseModel):
    id: int
    name: str


class RoutineExerciseRecord(BaseModel):
    id: int
    routine_id: Optional[int] = None
    exercise_id: Optional[int] = None
    sort_order: Optional[int] = None


class BackupDocument(BaseModel):
    """Full-dataset snapshot as written to and read from backup files.

    ``routines`` and ``routine_exercises`` are absent from files written by
    older releases.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: int = BACKUP_VERSION
    exported_at: Optional[str] = Field(default=None, alias="exportedAt")
    exercises: List[ExerciseRecord]
    workouts: List[WorkoutRecord]
    sets: List[SetRecord]
    routines: Optional[List[RoutineRecord]] = None
    routine_exercises: Optional[List[RoutineExerciseRecord]] = None


def validate_backup(data: object) -> BackupDocument:
    if not isinstance(data, dict):
        raise BackupValidationError("Invalid backup file: expected a JSON object")
    missing = [key for key in ("exercises", "workouts", "sets") if data.get(key) is None]
    if missing:
        raise BackupValidationError(
            "Invalid backup file: missing " + ", ".join(missing)
        )
    try:
        return BackupDocument.model_validate(data)
    except ValidationError as e:
        raise BackupValidationError(str(e))
