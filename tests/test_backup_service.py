import json
import os
import sys
from unittest.mock import patch

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from backup_schema import BACKUP_VERSION, BackupValidationError
from backup_service import BackupService
from db import (
    Database,
    ExerciseRepository,
    RoutineExerciseRepository,
    RoutineRepository,
    SetRepository,
    STANDARD_EXERCISES,
    StorageError,
    WorkoutRepository,
)
from routine_service import RoutineService

TABLES = ("exercises", "workouts", "sets", "routines", "routine_exercises")


class Store:
    def __init__(self, path: str, export_dir: str) -> None:
        self.db = Database(path)
        self.exercises = ExerciseRepository(self.db)
        self.workouts = WorkoutRepository(self.db)
        self.sets = SetRepository(self.db)
        self.routines = RoutineRepository(self.db)
        self.routine_exercises = RoutineExerciseRepository(self.db)
        self.backup = BackupService(
            self.db,
            self.exercises,
            self.workouts,
            self.sets,
            self.routines,
            self.routine_exercises,
            export_dir=export_dir,
        )
        self.routine_service = RoutineService(
            self.db, self.routines, self.routine_exercises, self.workouts, self.sets
        )

    def records(self) -> dict:
        data = self.backup.snapshot()
        return {t: data[t] for t in TABLES}


@pytest.fixture
def store(tmp_path):
    s = Store(":memory:", str(tmp_path))
    yield s
    s.db.close()


def _populate(store: Store) -> None:
    ex = store.exercises.add("Hack Squat", "Legs")
    w1 = store.workouts.create("2024-01-01T10:00:00.000Z", "heavy day")
    w2 = store.workouts.create("2024-01-05T10:00:00.000Z")
    store.sets.add(w1, ex, 120, 5)
    store.sets.add(w1, 1, 80, 8)
    store.sets.add(w2, ex, 125, 3)
    store.routine_service.create_from_workout("Legs", w1)


class TestSnapshot:
    def test_document_layout(self, store):
        _populate(store)
        data = store.backup.snapshot()
        assert data["version"] == BACKUP_VERSION
        assert data["exportedAt"].endswith("Z")
        assert len(data["exercises"]) == len(STANDARD_EXERCISES) + 1
        assert data["workouts"][0] == {
            "id": 1,
            "date": "2024-01-01T10:00:00.000Z",
            "note": "heavy day",
        }
        assert data["sets"][0] == {
            "id": 1,
            "workout_id": 1,
            "exercise_id": 30,
            "weight_kg": 120.0,
            "reps": 5,
        }
        assert data["routines"] == [{"id": 1, "name": "Legs"}]
        assert len(data["routine_exercises"]) == 2


class TestExport:
    def test_writes_file_and_shares_path(self, store, tmp_path):
        _populate(store)
        shared = []
        path = store.backup.export(shared.append)
        assert path == os.path.join(str(tmp_path), "iron_vault_backup.json")
        assert shared == [path]
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert len(data["sets"]) == 3

    def test_missing_directory_propagates(self, store, tmp_path):
        store.backup.export_dir = str(tmp_path / "missing")
        shared = []
        with pytest.raises(OSError):
            store.backup.export(shared.append)
        assert shared == []


class TestImport:
    def test_round_trip_restores_identical_data(self, store, tmp_path):
        _populate(store)
        before = store.records()
        path = store.backup.export()
        with open(path, encoding="utf-8") as f:
            content = f.read()

        other = Store(str(tmp_path / "other.db"), str(tmp_path))
        other.workouts.create("2023-06-01T10:00:00.000Z", "will be replaced")
        other.backup.import_content(content)
        assert other.records() == before
        other.db.close()

    def test_import_replaces_existing_rows(self, store):
        _populate(store)
        document = {
            "version": 1,
            "exportedAt": "2024-02-01T00:00:00.000Z",
            "exercises": [{"id": 7, "name": "Sled Push", "target_body_part": "Legs"}],
            "workouts": [{"id": 3, "date": "2024-01-31T09:00:00.000Z", "note": None}],
            "sets": [
                {"id": 11, "workout_id": 3, "exercise_id": 7, "weight_kg": 200, "reps": 2}
            ],
        }
        store.backup.import_content(json.dumps(document))
        records = store.records()
        assert records["exercises"] == document["exercises"]
        assert records["workouts"] == document["workouts"]
        assert records["sets"] == [
            {"id": 11, "workout_id": 3, "exercise_id": 7, "weight_kg": 200.0, "reps": 2}
        ]
        assert records["routines"] == []
        assert records["routine_exercises"] == []

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            "[]",
            json.dumps({"version": 1, "exercises": [], "workouts": []}),
            json.dumps({"version": 1, "exercises": [], "sets": [], "workouts": None}),
            json.dumps({"exercises": [{"name": "no id"}], "workouts": [], "sets": []}),
        ],
    )
    def test_invalid_document_changes_nothing(self, store, content):
        _populate(store)
        before = store.records()
        with pytest.raises(BackupValidationError):
            store.backup.import_content(content)
        assert store.records() == before

    def test_failed_restore_keeps_previous_rows(self, store):
        _populate(store)
        before = store.records()
        document = {
            "version": 1,
            "exercises": [
                {"id": 1, "name": "Sled Push", "target_body_part": "Legs"},
                {"id": 1, "name": "Sled Pull", "target_body_part": "Legs"},
            ],
            "workouts": [],
            "sets": [],
        }
        with pytest.raises(StorageError):
            store.backup.import_content(json.dumps(document))
        assert store.records() == before

    def test_failure_while_inserting_sets_rolls_back(self, store):
        _populate(store)
        before = store.records()
        data = store.backup.snapshot()
        with patch.object(store.sets, "insert_records", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                store.backup.import_content(json.dumps(data))
        assert store.records() == before

    def test_newer_version_is_accepted_with_warning(self, store, caplog):
        document = {"version": 2, "exercises": [], "workouts": [], "sets": []}
        store.backup.import_content(json.dumps(document))
        assert "newer than supported" in caplog.text
        assert store.records()["exercises"] == []

    def test_import_from_cancelled_pick(self, store):
        _populate(store)
        before = store.records()
        assert store.backup.import_from(lambda: None) is False
        assert store.records() == before

    def test_import_from_pick(self, store):
        document = {"version": 1, "exercises": [], "workouts": [], "sets": []}
        assert store.backup.import_from(lambda: json.dumps(document)) is True
        assert store.records()["workouts"] == []


class TestClear:
    def test_clear_wipes_and_reseeds(self, store):
        _populate(store)
        store.backup.clear()
        records = store.records()
        assert len(records["exercises"]) == len(STANDARD_EXERCISES)
        assert records["workouts"] == []
        assert records["sets"] == []
        assert records["routines"] == []
        assert records["routine_exercises"] == []

    def test_failed_clear_keeps_everything(self, store):
        _populate(store)
        before = store.records()
        with patch.object(store.exercises, "delete_all", side_effect=StorageError("locked")):
            with pytest.raises(StorageError):
                store.backup.clear()
        assert store.records() == before
