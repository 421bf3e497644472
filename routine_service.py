from __future__ import annotations
import logging

from db import (
    Database,
    RoutineExerciseRepository,
    RoutineRepository,
    SetRepository,
    WorkoutRepository,
)

logger = logging.getLogger(__name__)


class RoutineService:
    """Saves a workout's exercise line-up as a routine and replays it."""

    def __init__(
        self,
        db: Database,
        routine_repo: RoutineRepository,
        routine_exercise_repo: RoutineExerciseRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
    ) -> None:
        self.db = db
        self.routines = routine_repo
        self.routine_exercises = routine_exercise_repo
        self.workouts = workout_repo
        self.sets = set_repo

    def create_from_workout(self, name: str, workout_id: int) -> int:
        """Create a routine holding the distinct exercises of a workout.

        Exercises keep the order in which they first appeared in the workout.
        The routine row and its exercises are written in one transaction.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("routine name must not be empty")
        self.workouts.fetch_detail(workout_id)
        with self.db.transaction():
            routine_id = self.routines.create(name)
            exercise_ids = self.sets.fetch_exercise_order(workout_id)
            if not exercise_ids:
                raise ValueError("workout has no sets to save as a routine")
            for position, exercise_id in enumerate(exercise_ids):
                self.routine_exercises.add(routine_id, exercise_id, position)
        logger.info(
            "Saved routine %r with %d exercises from workout %s",
            name,
            len(exercise_ids),
            workout_id,
        )
        return routine_id

    def apply_to_workout(self, routine_id: int, workout_id: int) -> list[int]:
        """Insert one placeholder set per routine exercise into a workout.

        Placeholders are 0 kg x 0 reps. Applying a routine twice inserts the
        placeholders twice.
        """
        self.routines.fetch_detail(routine_id)
        self.workouts.fetch_detail(workout_id)
        set_ids: list[int] = []
        with self.db.transaction():
            for exercise_id in self.routine_exercises.fetch_exercise_ids(routine_id):
                set_ids.append(self.sets.add(workout_id, exercise_id, 0, 0))
        return set_ids

    def list_routines(self) -> list[dict[str, object]]:
        return [
            {"id": rid, "name": name} for rid, name in self.routines.fetch_all_routines()
        ]

    def routine_exercises_for(self, routine_id: int) -> list[dict[str, object]]:
        return [
            {
                "id": reid,
                "exercise_id": eid,
                "exercise_name": name,
                "sort_order": order,
            }
            for reid, eid, name, order in self.routine_exercises.fetch_for_routine(
                routine_id
            )
        ]

    def delete_routine(self, routine_id: int) -> None:
        self.routines.delete(routine_id)
