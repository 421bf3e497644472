from __future__ import annotations
import datetime
import logging

from db import WorkoutRepository
from tools import DateTools

logger = logging.getLogger(__name__)


class SessionService:
    """Starts, resumes and finishes workout sessions and prunes abandoned ones."""

    def __init__(self, workout_repo: WorkoutRepository) -> None:
        self.workouts = workout_repo

    def start_today(self, today: datetime.date | None = None) -> tuple[int, bool]:
        """Return ``(workout_id, resumed)`` for today's session.

        The latest workout is resumed when its date falls on the current
        local calendar day; otherwise a new workout dated now is created.
        """
        today = today or datetime.date.today()
        latest = self.workouts.fetch_latest()
        if latest is not None:
            wid, date, _note = latest
            try:
                if DateTools.local_day(date) == today:
                    return wid, True
            except ValueError:
                logger.warning("Workout %s has an unreadable date %r", wid, date)
        return self.workouts.create(), False

    def start_past(self, year: int, month: int, day: int) -> int:
        """Create a workout dated local midnight of the given day."""
        date = DateTools.local_midnight(year, month, day)
        return self.workouts.create(date)

    def finish(self, workout_id: int) -> bool:
        """Close a session, deleting it when nothing was recorded.

        Returns ``True`` when the workout was abandoned and removed.
        """
        _wid, _date, note = self.workouts.fetch_detail(workout_id)
        if self.workouts.set_count(workout_id) == 0 and not note:
            self.workouts.delete(workout_id)
            logger.info("Discarded empty workout %s", workout_id)
            return True
        return False

    def cleanup(self) -> int:
        """Delete every workout that has no sets and no note."""
        removed = self.workouts.delete_empty()
        if removed:
            logger.info("Removed %d abandoned workouts", removed)
        return removed
