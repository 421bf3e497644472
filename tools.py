import math
import datetime
from typing import Iterable, Optional, Tuple


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPLEY_DIVISOR: float = 30.0

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer, halves away from zero."""
        if value < 0:
            return -math.floor(-value + 0.5)
        return math.floor(value + 0.5)

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @classmethod
    def one_rep_max(cls, weight: float, reps: int) -> int:
        """Return the Epley estimate rounded to whole kilograms."""
        return cls.round_half_up(cls.epley_1rm(weight, reps))

    @staticmethod
    def volume(sets: Iterable[Tuple[float, int]]) -> float:
        """Compute training volume as the sum of weight times reps."""
        vol = 0.0
        for weight, reps in sets:
            vol += weight * reps
        return vol


class DateTools:
    """Helpers for the ISO-8601 timestamps stored on workouts."""

    @staticmethod
    def utc_timestamp(moment: Optional[datetime.datetime] = None) -> str:
        """Return ``moment`` (default now) as a UTC ISO string ending in ``Z``."""
        moment = moment or datetime.datetime.now(datetime.timezone.utc)
        if moment.tzinfo is None:
            moment = moment.astimezone()
        utc = moment.astimezone(datetime.timezone.utc)
        return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def parse_timestamp(ts: str) -> datetime.datetime:
        if ts.endswith("Z"):
            ts = ts[:-1] + "+00:00"
        return datetime.datetime.fromisoformat(ts)

    @classmethod
    def local_day(cls, ts: str) -> datetime.date:
        """Return the calendar day of ``ts`` in the local timezone."""
        moment = cls.parse_timestamp(ts)
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.date()

    @classmethod
    def local_midnight(cls, year: int, month: int, day: int) -> str:
        """Return local midnight of the given day as a UTC timestamp.

        Raises ``ValueError`` when the triple is not a real calendar date.
        """
        try:
            date = datetime.date(int(year), int(month), int(day))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid date: {year}-{month}-{day}") from exc
        midnight = datetime.datetime.combine(date, datetime.time())
        return cls.utc_timestamp(midnight.astimezone())
