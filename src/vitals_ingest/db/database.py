"""SQLite database for ingested health data."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from .models import ImportRecord, User, Workout, WorkoutRoute
from .schema import SCHEMA, TABLES

logger = logging.getLogger(__name__)

PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA cache_size = 10000",
    "PRAGMA temp_store = MEMORY",
)


class HealthDatabase:
    """SQLite database manager for ingested health data.

    Every public method opens its own connection; a method's statements
    commit together or not at all.
    """

    def __init__(self, db_path: str | Path = "vitals.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        for pragma in PRAGMAS:
            conn.execute(pragma)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """One transaction: committed on exit, rolled back if the block raises."""
        with self._get_connection() as conn:
            yield conn

    # ------------------------------------------------------------------
    # Users and import history
    # ------------------------------------------------------------------

    def get_or_create_user(self, username: str, display_name: Optional[str] = None) -> User:
        """Get a user by username, creating it if needed."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
            if row:
                return User(**dict(row))

            cursor = conn.execute(
                "INSERT INTO users (username, display_name) VALUES (?, ?)",
                (username, display_name or username),
            )
            logger.info(f"Created user {username} (id={cursor.lastrowid})")
            return User(
                id=cursor.lastrowid,
                username=username,
                display_name=display_name or username,
            )

    def record_import(self, record: ImportRecord) -> int:
        """Append an import history row. Rows are never updated."""
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO import_history
                (user_id, source_type, source_file, records_imported, status, error_log)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                record.user_id,
                record.source_type,
                record.source_file,
                record.records_imported,
                record.status,
                record.error_log,
            ))
            return cursor.lastrowid

    def get_import_history(self, user_id: int, limit: int = 20) -> List[ImportRecord]:
        """Most recent import phases first."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM import_history
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
            """, (user_id, limit)).fetchall()
        return [ImportRecord(**dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Workouts and routes
    # ------------------------------------------------------------------

    def get_workout(self, workout_id: int) -> Optional[Workout]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM workouts WHERE id = ?", (workout_id,)
            ).fetchone()
        return self._row_to_workout(row) if row else None

    def get_workouts(self, user_id: int, activity_type: Optional[str] = None) -> List[Workout]:
        """Workouts for a user, newest first."""
        query = "SELECT * FROM workouts WHERE user_id = ?"
        params: list = [user_id]
        if activity_type:
            query += " AND activity_type = ?"
            params.append(activity_type)
        query += " ORDER BY datetime(start_date) DESC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_workout(row) for row in rows]

    def find_workout_for_route(
        self,
        user_id: int,
        start_time: str,
        tolerance_minutes: int = 5,
    ) -> Optional[int]:
        """Find the workout whose interval contains `start_time`, within tolerance.

        Among overlapping workouts the one with the latest start wins; equal
        starts fall back to the most recently inserted row.
        """
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT id FROM workouts
                WHERE user_id = ?
                  AND datetime(start_date) <= datetime(?, ?)
                  AND datetime(end_date) >= datetime(?, ?)
                ORDER BY datetime(start_date) DESC, id DESC
                LIMIT 1
            """, (
                user_id,
                start_time, f"+{tolerance_minutes} minutes",
                start_time, f"-{tolerance_minutes} minutes",
            )).fetchone()
        return row["id"] if row else None

    def link_route(self, route: WorkoutRoute) -> None:
        """Store a route and flag its workout, in one transaction.

        A workout keeps at most one route; linking again replaces it.
        """
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO workout_routes
                (workout_id, file_path, start_date, end_date, point_count, points_json)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(workout_id) DO UPDATE SET
                    file_path = excluded.file_path,
                    start_date = excluded.start_date,
                    end_date = excluded.end_date,
                    point_count = excluded.point_count,
                    points_json = excluded.points_json
            """, (
                route.workout_id,
                route.file_path,
                route.start_date,
                route.end_date,
                route.point_count,
                route.points_json,
            ))
            conn.execute(
                "UPDATE workouts SET has_route = 1 WHERE id = ?", (route.workout_id,)
            )

    def get_route_for_workout(self, workout_id: int) -> Optional[WorkoutRoute]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM workout_routes WHERE workout_id = ?", (workout_id,)
            ).fetchone()
        return WorkoutRoute(**dict(row)) if row else None

    def get_route_points(self, workout_id: int) -> List[dict]:
        """Decoded display copy of a workout's route."""
        route = self.get_route_for_workout(workout_id)
        if not route or not route.points_json:
            return []
        return json.loads(route.points_json)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def count_rows(self, table: str, user_id: Optional[int] = None) -> int:
        """Row count for one of the known tables."""
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        query = f"SELECT COUNT(*) as cnt FROM {table}"
        params: tuple = ()
        if user_id is not None and table not in ("users", "workout_routes"):
            query += " WHERE user_id = ?"
            params = (user_id,)
        with self._get_connection() as conn:
            return conn.execute(query, params).fetchone()["cnt"]

    def get_stats(self) -> dict:
        """Get database statistics."""
        stats = {table: self.count_rows(table) for table in TABLES}
        stats["db_path"] = str(self.db_path)
        return stats

    @staticmethod
    def _row_to_workout(row: sqlite3.Row) -> Workout:
        data = dict(row)
        data["has_route"] = bool(data["has_route"])
        return Workout(**data)
