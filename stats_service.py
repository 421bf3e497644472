from __future__ import annotations
from typing import List, Optional, Dict
from db import SetRepository, WorkoutRepository
from tools import MathTools


class StatisticsService:
    """Compute workout statistics for analysis.

    Every figure is recomputed from the raw rows on each call.
    """

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
    ) -> None:
        self.workouts = workout_repo
        self.sets = set_repo

    def workout_summaries(self) -> List[Dict[str, object]]:
        """Return every workout with volume, exercise names and body parts.

        Workouts are ordered most recent first. ``total_volume`` is ``None``
        for a workout without sets.
        """
        summaries: Dict[int, Dict[str, object]] = {}
        pairs: Dict[int, list[tuple[float, int]]] = {}
        for wid, date, note, set_id, weight, reps, ex_name, body_part in (
            self.workouts.fetch_summary_rows()
        ):
            item = summaries.setdefault(
                wid,
                {
                    "id": wid,
                    "date": date,
                    "note": note,
                    "total_volume": None,
                    "exercise_names": [],
                    "body_parts": [],
                },
            )
            if set_id is None:
                continue
            if weight is not None and reps is not None:
                pairs.setdefault(wid, []).append((float(weight), int(reps)))
            if ex_name and ex_name not in item["exercise_names"]:
                item["exercise_names"].append(ex_name)
            if body_part and body_part not in item["body_parts"]:
                item["body_parts"].append(body_part)
        for wid, values in pairs.items():
            summaries[wid]["total_volume"] = MathTools.volume(values)
        return list(summaries.values())

    def workout_volume(self, workout_id: int) -> Optional[float]:
        rows = self.sets.fetch_for_workout(workout_id)
        values = [
            (float(weight), int(reps))
            for _sid, _wid, _eid, weight, reps, _name in rows
            if weight is not None and reps is not None
        ]
        if not values:
            return None
        return MathTools.volume(values)

    def personal_bests(self) -> List[Dict[str, object]]:
        """Return the heaviest weight per exercise and best reps at it."""
        return [
            {
                "exercise_id": int(ex_id),
                "exercise_name": name,
                "max_weight": float(max_weight),
                "best_reps": int(best_reps) if best_reps is not None else 0,
            }
            for ex_id, name, max_weight, best_reps in self.sets.fetch_personal_bests()
        ]

    def exercise_progress(self, exercise_id: int) -> List[Dict[str, object]]:
        """Return the daily top set of an exercise with its estimated 1RM."""
        progress = []
        for date, max_weight, reps in self.sets.fetch_progress(exercise_id):
            if max_weight is None:
                continue
            weight = float(max_weight)
            reps = int(reps or 0)
            progress.append(
                {
                    "date": date,
                    "max_weight": weight,
                    "reps": reps,
                    "one_rep_max": MathTools.one_rep_max(weight, reps),
                }
            )
        return progress

    def last_set(self, exercise_id: int) -> Optional[Dict[str, object]]:
        row = self.sets.fetch_last_for_exercise(exercise_id)
        if row is None:
            return None
        sid, wid, eid, weight, reps, date = row
        return {
            "id": sid,
            "workout_id": wid,
            "exercise_id": eid,
            "weight_kg": weight,
            "reps": reps,
            "date": date,
        }

    def workout_sets(self, workout_id: int) -> List[Dict[str, object]]:
        return [
            {
                "id": sid,
                "workout_id": wid,
                "exercise_id": eid,
                "weight_kg": weight,
                "reps": reps,
                "exercise_name": name,
            }
            for sid, wid, eid, weight, reps, name in self.sets.fetch_for_workout(
                workout_id
            )
        ]
