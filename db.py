import math
import sqlite3
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from tools import DateTools

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the SQLite store rejects a statement."""


class BodyPart(str, Enum):
    """Category labels used by the standard exercise catalogue."""

    CHEST = "Chest"
    BACK = "Back"
    LEGS = "Legs"
    SHOULDERS = "Shoulders"
    BICEPS = "Biceps"
    TRICEPS = "Triceps"
    CORE = "Core"


# Filter values offered to the exercise picker. "Arms" groups biceps and
# triceps, "Other" matches anything outside the catalogue categories.
BODY_PART_FILTERS = ["All", "Chest", "Back", "Legs", "Shoulders", "Arms", "Core", "Other"]
ARM_PARTS = (BodyPart.BICEPS.value, BodyPart.TRICEPS.value)

STANDARD_EXERCISES: List[Tuple[str, BodyPart]] = [
    ("Bench Press", BodyPart.CHEST),
    ("Incline Bench Press", BodyPart.CHEST),
    ("Dumbbell Press", BodyPart.CHEST),
    ("Cable Fly", BodyPart.CHEST),
    ("Deadlift", BodyPart.BACK),
    ("Pull Up", BodyPart.BACK),
    ("Lat Pulldown", BodyPart.BACK),
    ("Bent Over Row", BodyPart.BACK),
    ("Seated Cable Row", BodyPart.BACK),
    ("Squat", BodyPart.LEGS),
    ("Leg Press", BodyPart.LEGS),
    ("Lunges", BodyPart.LEGS),
    ("Leg Extension", BodyPart.LEGS),
    ("Leg Curl", BodyPart.LEGS),
    ("Calf Raise", BodyPart.LEGS),
    ("Overhead Press", BodyPart.SHOULDERS),
    ("Dumbbell Shoulder Press", BodyPart.SHOULDERS),
    ("Lateral Raise", BodyPart.SHOULDERS),
    ("Front Raise", BodyPart.SHOULDERS),
    ("Face Pull", BodyPart.SHOULDERS),
    ("Barbell Curl", BodyPart.BICEPS),
    ("Dumbbell Curl", BodyPart.BICEPS),
    ("Tricep Extension", BodyPart.TRICEPS),
    ("Skullcrusher", BodyPart.TRICEPS),
    ("Dips", BodyPart.TRICEPS),
    ("Crunch", BodyPart.CORE),
    ("Plank", BodyPart.CORE),
    ("Leg Raise", BodyPart.CORE),
    ("Ab Wheel", BodyPart.CORE),
]


class Database:
    """Owns the SQLite connection and schema initialization.

    One instance is created per process and handed to every repository, so
    all reads and writes share a single connection. Single statements run in
    autocommit mode; multi-statement mutations use :meth:`transaction`.
    """

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    target_body_part TEXT
                );""",
            {"name": "TEXT NOT NULL DEFAULT ''", "target_body_part": "TEXT"},
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    note TEXT
                );""",
            {"date": "TEXT NOT NULL DEFAULT ''", "note": "TEXT"},
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER,
                    exercise_id INTEGER,
                    weight_kg REAL,
                    reps INTEGER,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id),
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            {
                "workout_id": "INTEGER",
                "exercise_id": "INTEGER",
                "weight_kg": "REAL",
                "reps": "INTEGER",
            },
        ),
        "routines": (
            """CREATE TABLE routines (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                );""",
            {"name": "TEXT NOT NULL DEFAULT ''"},
        ),
        "routine_exercises": (
            """CREATE TABLE routine_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    routine_id INTEGER,
                    exercise_id INTEGER,
                    sort_order INTEGER,
                    FOREIGN KEY(routine_id) REFERENCES routines(id),
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            {"routine_id": "INTEGER", "exercise_id": "INTEGER", "sort_order": "INTEGER"},
        ),
    }

    def __init__(self, db_path: str = "ironvault.db") -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path, isolation_level=None)
        self._in_transaction = False
        self.initialize()

    @property
    def path(self) -> str:
        return self._db_path

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def connection(self):
        """Yield the shared connection, translating SQLite errors."""
        try:
            yield self._conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    @contextmanager
    def transaction(self):
        """Run the enclosed statements as one all-or-nothing unit.

        A transaction opened while another is active joins the outer one.
        """
        if self._in_transaction:
            with self.connection() as conn:
                yield conn
            return
        with self.connection() as conn:
            conn.execute("BEGIN;")
            self._in_transaction = True
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK;")
                raise
            else:
                conn.execute("COMMIT;")
            finally:
                self._in_transaction = False

    def initialize(self) -> None:
        """Create missing tables and seed the standard exercise catalogue.

        Safe to call on every start. Failures are logged and leave the store
        in whatever state resulted, so the caller can still wipe or import.
        """
        self._ensure_schema()
        try:
            self._seed_exercises()
        except StorageError:
            logger.exception("Seeding standard exercises failed")

    def _ensure_schema(self) -> None:
        for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
            try:
                with self.transaction() as conn:
                    self._ensure_table(conn, table, sql, columns)
            except StorageError:
                logger.exception("Could not ensure table %s", table)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: Dict[str, str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        for col, decl in columns.items():
            if col not in existing_cols:
                logger.info("Adding missing column %s.%s", table, col)
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {col} {decl};")

    def _seed_exercises(self) -> None:
        added = 0
        with self.transaction() as conn:
            for name, body_part in STANDARD_EXERCISES:
                row = conn.execute(
                    "SELECT COUNT(*) FROM exercises WHERE name = ?;", (name,)
                ).fetchone()
                if row[0] == 0:
                    conn.execute(
                        "INSERT INTO exercises (name, target_body_part) VALUES (?, ?);",
                        (name, body_part.value),
                    )
                    added += 1
        if added:
            logger.info("Seeded %d standard exercises", added)


class BaseRepository:
    """Base repository providing helper methods over a shared database."""

    table: str = ""
    columns: Tuple[str, ...] = ()

    def __init__(self, db: Database) -> None:
        self.db = db

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self.db.connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.lastrowid

    def execute_count(self, query: str, params: Tuple = ()) -> int:
        """Run ``query`` and return the number of affected rows."""
        with self.db.connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self.db.connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.fetchall()

    def fetch_one(self, query: str, params: Tuple = ()) -> Optional[Tuple]:
        with self.db.connection() as conn:
            cursor = conn.execute(query, params)
            return cursor.fetchone()

    def exists(self, row_id: int) -> bool:
        row = self.fetch_one(f"SELECT 1 FROM {self.table} WHERE id = ?;", (row_id,))
        return row is not None

    def fetch_records(self) -> List[dict]:
        """Return every row of the table as a column-keyed mapping."""
        cols = ", ".join(self.columns)
        rows = self.fetch_all(f"SELECT {cols} FROM {self.table} ORDER BY id;")
        return [dict(zip(self.columns, row)) for row in rows]

    def insert_records(self, records: Iterable[dict]) -> None:
        """Insert rows keeping their original ids."""
        cols = ", ".join(self.columns)
        placeholders = ", ".join("?" for _ in self.columns)
        values = [tuple(rec.get(c) for c in self.columns) for rec in records]
        with self.db.connection() as conn:
            conn.executemany(
                f"INSERT INTO {self.table} ({cols}) VALUES ({placeholders});", values
            )

    def delete_all(self) -> None:
        self.execute(f"DELETE FROM {self.table};")


class ExerciseRepository(BaseRepository):
    """Repository for exercise table operations."""

    table = "exercises"
    columns = ("id", "name", "target_body_part")

    def add(self, name: str, target_body_part: str = "") -> int:
        name = name.strip()
        if not name:
            raise ValueError("exercise name must not be empty")
        return self.execute(
            "INSERT INTO exercises (name, target_body_part) VALUES (?, ?);",
            (name, target_body_part),
        )

    def fetch_all_exercises(
        self, body_part: Optional[str] = None, query: Optional[str] = None
    ) -> List[Tuple[int, str, Optional[str]]]:
        """Return exercises ordered by name, optionally filtered."""
        sql = "SELECT id, name, target_body_part FROM exercises"
        params: list[str] = []
        where_clauses: list[str] = []
        if body_part and body_part != "All":
            if body_part == "Arms":
                where_clauses.append("target_body_part IN (?, ?)")
                params.extend(ARM_PARTS)
            elif body_part == "Other":
                known = [bp.value for bp in BodyPart]
                marks = ", ".join("?" for _ in known)
                where_clauses.append(
                    f"(target_body_part IS NULL OR target_body_part NOT IN ({marks}))"
                )
                params.extend(known)
            else:
                where_clauses.append("target_body_part = ?")
                params.append(body_part)
        if query:
            where_clauses.append("lower(name) LIKE ?")
            params.append(f"%{query.lower()}%")
        if where_clauses:
            sql += " WHERE " + " AND ".join(where_clauses)
        sql += " ORDER BY name ASC;"
        return self.fetch_all(sql, tuple(params))

class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    table = "workouts"
    columns = ("id", "date", "note")

    def create(self, date: str | None = None, note: str | None = "") -> int:
        return self.execute(
            "INSERT INTO workouts (date, note) VALUES (?, ?);",
            (date or DateTools.utc_timestamp(), note),
        )

    def fetch_all_workouts(self) -> List[Tuple[int, str, Optional[str]]]:
        return self.fetch_all(
            "SELECT id, date, note FROM workouts ORDER BY date DESC, id DESC;"
        )

    def fetch_latest(self) -> Optional[Tuple[int, str, Optional[str]]]:
        return self.fetch_one(
            "SELECT id, date, note FROM workouts ORDER BY date DESC, id DESC LIMIT 1;"
        )

    def fetch_detail(self, workout_id: int) -> Tuple[int, str, Optional[str]]:
        row = self.fetch_one(
            "SELECT id, date, note FROM workouts WHERE id = ?;", (workout_id,)
        )
        if row is None:
            raise ValueError("workout not found")
        return row

    def fetch_summary_rows(
        self,
    ) -> List[
        Tuple[
            int,
            str,
            Optional[str],
            Optional[int],
            Optional[float],
            Optional[int],
            Optional[str],
            Optional[str],
        ]
    ]:
        """Return one row per workout/set pair for summary aggregation."""
        return self.fetch_all(
            """
            SELECT w.id, w.date, w.note, s.id, s.weight_kg, s.reps,
                   e.name, e.target_body_part
            FROM workouts w
            LEFT JOIN sets s ON s.workout_id = w.id
            LEFT JOIN exercises e ON e.id = s.exercise_id
            ORDER BY w.date DESC, w.id DESC, s.id ASC;
            """
        )

    def set_note(self, workout_id: int, note: str | None) -> None:
        self.execute(
            "UPDATE workouts SET note = ? WHERE id = ?;",
            (note, workout_id),
        )

    def set_count(self, workout_id: int) -> int:
        row = self.fetch_one(
            "SELECT COUNT(*) FROM sets WHERE workout_id = ?;", (workout_id,)
        )
        return int(row[0]) if row else 0

    def delete(self, workout_id: int) -> None:
        if not self.exists(workout_id):
            raise ValueError("workout not found")
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM sets WHERE workout_id = ?;", (workout_id,))
            conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))

    def delete_empty(self) -> int:
        """Remove workouts that have neither sets nor a note."""
        return self.execute_count(
            """
            DELETE FROM workouts
            WHERE NOT EXISTS (SELECT 1 FROM sets s WHERE s.workout_id = workouts.id)
            AND (note IS NULL OR note = '');
            """
        )


class SetRepository(BaseRepository):
    """Repository for sets table operations."""

    table = "sets"
    columns = ("id", "workout_id", "exercise_id", "weight_kg", "reps")

    @staticmethod
    def _validate(weight_kg: float, reps: int) -> None:
        if not math.isfinite(weight_kg) or weight_kg < 0:
            raise ValueError("weight must be a non-negative number")
        if isinstance(reps, float) and not reps.is_integer():
            raise ValueError("reps must be a whole number")
        if reps < 0:
            raise ValueError("reps must be non-negative")

    def add(self, workout_id: int, exercise_id: int, weight_kg: float, reps: int) -> int:
        self._validate(weight_kg, reps)
        if self.fetch_one("SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)) is None:
            raise ValueError("workout not found")
        if self.fetch_one("SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,)) is None:
            raise ValueError("exercise not found")
        return self.execute(
            "INSERT INTO sets (workout_id, exercise_id, weight_kg, reps) VALUES (?, ?, ?, ?);",
            (workout_id, exercise_id, float(weight_kg), int(reps)),
        )

    def update(self, set_id: int, weight_kg: float, reps: int) -> None:
        self._validate(weight_kg, reps)
        if not self.exists(set_id):
            raise ValueError("set not found")
        self.execute(
            "UPDATE sets SET weight_kg = ?, reps = ? WHERE id = ?;",
            (float(weight_kg), int(reps), set_id),
        )

    def remove(self, set_id: int) -> None:
        self.execute("DELETE FROM sets WHERE id = ?;", (set_id,))

    def fetch_for_workout(
        self, workout_id: int
    ) -> List[Tuple[int, int, int, float, int, Optional[str]]]:
        return self.fetch_all(
            "SELECT s.id, s.workout_id, s.exercise_id, s.weight_kg, s.reps, e.name "
            "FROM sets s JOIN exercises e ON s.exercise_id = e.id "
            "WHERE s.workout_id = ? ORDER BY s.id DESC;",
            (workout_id,),
        )

    def fetch_exercise_order(self, workout_id: int) -> List[int]:
        """Return the distinct exercises of a workout in order of first set."""
        rows = self.fetch_all(
            """
            SELECT exercise_id FROM sets
            WHERE workout_id = ?
            GROUP BY exercise_id
            ORDER BY MIN(id) ASC;
            """,
            (workout_id,),
        )
        return [int(r[0]) for r in rows]

    def fetch_last_for_exercise(
        self, exercise_id: int
    ) -> Optional[Tuple[int, int, int, float, int, str]]:
        return self.fetch_one(
            """
            SELECT s.id, s.workout_id, s.exercise_id, s.weight_kg, s.reps, w.date
            FROM sets s
            JOIN workouts w ON s.workout_id = w.id
            WHERE s.exercise_id = ?
            ORDER BY w.date DESC, s.id DESC
            LIMIT 1;
            """,
            (exercise_id,),
        )

    def fetch_progress(self, exercise_id: int) -> List[Tuple[str, float, int]]:
        """Return ``(date, max_weight, reps)`` per workout date, oldest first.

        SQLite takes the bare ``reps`` column from the row that holds the
        maximum weight.
        """
        return self.fetch_all(
            """
            SELECT w.date, MAX(s.weight_kg) AS max_weight, s.reps
            FROM sets s
            JOIN workouts w ON s.workout_id = w.id
            WHERE s.exercise_id = ?
            GROUP BY w.date
            ORDER BY w.date ASC;
            """,
            (exercise_id,),
        )

    def fetch_personal_bests(self) -> List[Tuple[int, str, float, int]]:
        return self.fetch_all(
            """
            SELECT e.id, e.name, max_sets.max_w, MAX(s.reps)
            FROM sets s
            JOIN exercises e ON s.exercise_id = e.id
            JOIN (
                SELECT exercise_id, MAX(weight_kg) AS max_w
                FROM sets
                GROUP BY exercise_id
            ) max_sets ON s.exercise_id = max_sets.exercise_id
                      AND s.weight_kg = max_sets.max_w
            GROUP BY e.id, e.name
            ORDER BY e.name ASC;
            """
        )


class RoutineRepository(BaseRepository):
    """Repository for routines (saved workout presets)."""

    table = "routines"
    columns = ("id", "name")

    def create(self, name: str) -> int:
        return self.execute("INSERT INTO routines (name) VALUES (?);", (name,))

    def fetch_all_routines(self) -> List[Tuple[int, str]]:
        return self.fetch_all("SELECT id, name FROM routines ORDER BY name ASC;")

    def fetch_detail(self, routine_id: int) -> Tuple[int, str]:
        row = self.fetch_one(
            "SELECT id, name FROM routines WHERE id = ?;", (routine_id,)
        )
        if row is None:
            raise ValueError("routine not found")
        return row

    def delete(self, routine_id: int) -> None:
        if not self.exists(routine_id):
            raise ValueError("routine not found")
        with self.db.transaction() as conn:
            conn.execute(
                "DELETE FROM routine_exercises WHERE routine_id = ?;", (routine_id,)
            )
            conn.execute("DELETE FROM routines WHERE id = ?;", (routine_id,))


class RoutineExerciseRepository(BaseRepository):
    """Repository for exercises belonging to routines."""

    table = "routine_exercises"
    columns = ("id", "routine_id", "exercise_id", "sort_order")

    def add(self, routine_id: int, exercise_id: int, sort_order: int) -> int:
        return self.execute(
            "INSERT INTO routine_exercises (routine_id, exercise_id, sort_order) VALUES (?, ?, ?);",
            (routine_id, exercise_id, sort_order),
        )

    def fetch_exercise_ids(self, routine_id: int) -> List[int]:
        rows = self.fetch_all(
            "SELECT exercise_id FROM routine_exercises WHERE routine_id = ? ORDER BY sort_order ASC;",
            (routine_id,),
        )
        return [int(r[0]) for r in rows]

    def fetch_for_routine(
        self, routine_id: int
    ) -> List[Tuple[int, int, Optional[str], int]]:
        return self.fetch_all(
            "SELECT re.id, re.exercise_id, e.name, re.sort_order "
            "FROM routine_exercises re LEFT JOIN exercises e ON re.exercise_id = e.id "
            "WHERE re.routine_id = ? ORDER BY re.sort_order ASC;",
            (routine_id,),
        )
