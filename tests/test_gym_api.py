import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from backup_schema import BackupValidationError
from db import StorageError
from gym_api import GymAPI


@pytest.fixture
def api(tmp_path, monkeypatch):
    for env in ("IRONVAULT_DB", "IRONVAULT_EXPORT_DIR", "IRONVAULT_LOG_LEVEL"):
        monkeypatch.delenv(env, raising=False)
    instance = GymAPI(
        db_path=str(tmp_path / "vault.db"),
        yaml_path=str(tmp_path / "settings.yaml"),
        export_dir=str(tmp_path),
    )
    yield instance
    instance.close()


def _bench(api: GymAPI) -> int:
    return api.get_exercises(query="bench press")[0]["id"]


class TestWorkflow:
    def test_start_workout_resumes_today(self, api):
        first = api.start_workout()
        assert first is not None
        assert api.start_workout() == first
        assert api.get_latest_workout()["id"] == first

    def test_log_sets_and_read_statistics(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        bench = _bench(api)
        api.add_set(wid, bench, 100, 5)
        sid = api.add_set(wid, bench, 90, 8)
        assert api.update_set(sid, 95, 8) is True
        sets = api.get_sets_for_workout(wid)
        assert [s["weight_kg"] for s in sets] == [95.0, 100.0]
        assert api.get_personal_bests()[0]["max_weight"] == 100.0
        assert api.get_exercise_progress(bench)[0]["one_rep_max"] == 117
        assert api.get_last_set_for_exercise(bench)["id"] == sid
        assert api.last_error is None

    def test_list_workouts_prunes_empty_ones(self, api):
        keep = api.start_past_workout(2024, 1, 1)
        api.add_set(keep, _bench(api), 60, 10)
        api.start_past_workout(2024, 1, 2)
        noted = api.start_past_workout(2024, 1, 3)
        api.set_workout_note(noted, "mobility only")
        ids = [w["id"] for w in api.list_workouts()]
        assert ids == [noted, keep]

    def test_finish_workout(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        assert api.finish_workout(wid) is True
        assert api.get_latest_workout() is None

    def test_exercise_filters(self, api):
        arms = {e["target_body_part"] for e in api.get_exercises("Arms")}
        assert arms == {"Biceps", "Triceps"}
        custom = api.add_exercise("Sled Push")
        other = [e["id"] for e in api.get_exercises("Other")]
        assert other == [custom]
        assert len(api.get_exercises("All")) == 30

    def test_routines(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        bench = _bench(api)
        api.add_set(wid, bench, 100, 5)
        rid = api.create_routine_from_workout("Chest day", wid)
        assert api.get_routines() == [{"id": rid, "name": "Chest day"}]
        target = api.start_past_workout(2024, 1, 8)
        assert len(api.apply_routine_to_workout(target, rid)) == 1
        assert api.get_routine_exercises(rid)[0]["exercise_id"] == bench
        assert api.delete_routine(rid) is True
        assert api.get_routines() == []


class TestErrorPolicy:
    def test_invalid_input_raises(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        with pytest.raises(ValueError):
            api.add_set(wid, _bench(api), -5, 3)
        with pytest.raises(ValueError):
            api.add_set(wid, 9999, 50, 3)
        with pytest.raises(ValueError):
            api.start_past_workout(2024, 2, 31)

    @pytest.mark.parametrize(
        "weight, reps",
        [(float("nan"), 5), (float("inf"), 5), (60, 2.9), (60, float("nan"))],
    )
    def test_rejects_non_finite_weight_and_fractional_reps(self, api, weight, reps):
        wid = api.start_past_workout(2024, 1, 1)
        bench = _bench(api)
        sid = api.add_set(wid, bench, 60, 5)
        with pytest.raises(ValueError):
            api.add_set(wid, bench, weight, reps)
        with pytest.raises(ValueError):
            api.update_set(sid, weight, reps)
        sets = api.get_sets_for_workout(wid)
        assert [(s["weight_kg"], s["reps"]) for s in sets] == [(60.0, 5)]

    def test_whole_float_reps_are_accepted(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        sid = api.add_set(wid, _bench(api), 60, 5.0)
        assert api.get_sets_for_workout(wid)[0]["reps"] == 5
        assert sid is not None

    def test_storage_failures_return_neutral_values(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        api.db._conn.execute("DROP TABLE sets")
        assert api.get_personal_bests() == []
        assert isinstance(api.last_error, StorageError)
        assert api.list_workouts() == []
        assert api.add_set(wid, _bench(api), 50, 5) is None
        assert isinstance(api.last_error, StorageError)
        assert api.delete_workout(wid) is False

    def test_last_error_resets_on_success(self, api):
        api.db._conn.execute("DROP TABLE routines")
        assert api.get_routines() == []
        assert api.last_error is not None
        assert len(api.get_exercises()) == 29
        assert api.last_error is None


class TestBackup:
    def test_export_import_round_trip(self, api, tmp_path):
        wid = api.start_past_workout(2024, 1, 1)
        api.add_set(wid, _bench(api), 100, 5)
        shared = []
        path = api.export_data(shared.append)
        assert shared == [path]
        assert api.clear_data() is True
        assert api.list_workouts() == []
        with open(path, encoding="utf-8") as f:
            assert api.import_data(f.read()) is True
        assert [w["id"] for w in api.list_workouts()] == [wid]

    def test_export_failure_propagates(self, tmp_path, monkeypatch):
        monkeypatch.delenv("IRONVAULT_EXPORT_DIR", raising=False)
        with GymAPI(
            db_path=":memory:",
            yaml_path=str(tmp_path / "settings.yaml"),
            export_dir=str(tmp_path / "nope"),
        ) as broken:
            with pytest.raises(OSError):
                broken.export_data()

    def test_invalid_import_raises_and_keeps_data(self, api):
        wid = api.start_past_workout(2024, 1, 1)
        api.add_set(wid, _bench(api), 100, 5)
        with pytest.raises(BackupValidationError):
            api.import_data(json.dumps({"exercises": []}))
        assert len(api.get_sets_for_workout(wid)) == 1

    def test_import_from_cancelled(self, api):
        assert api.import_from(lambda: None) is False
