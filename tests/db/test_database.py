"""Tests for the health database."""

import sqlite3

import pytest

from vitals_ingest.db.models import ImportRecord, Workout, WorkoutRoute
from vitals_ingest.importers.writer import BatchWriter


def add_workout(db, user_id, uuid, start, end, activity_type="running") -> int:
    BatchWriter(db).write_now(Workout(
        user_id=user_id,
        uuid=uuid,
        activity_type=activity_type,
        start_date=start,
        end_date=end,
    ))
    return next(w.id for w in db.get_workouts(user_id) if w.uuid == uuid)


class TestDatabaseInit:
    """Tests for database initialization."""

    def test_creates_database(self, temp_db):
        """Database should be created on init."""
        assert temp_db.db_path.exists()

    def test_creates_tables(self, temp_db):
        """Required tables should be created."""
        with temp_db._get_connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )
            tables = {row["name"] for row in cursor.fetchall()}

        for table in ("users", "health_metrics", "workouts", "workout_routes", "import_history"):
            assert table in tables

    def test_reopen_is_idempotent(self, temp_db):
        """Opening an existing database keeps its data."""
        temp_db.get_or_create_user("alice")
        reopened = type(temp_db)(temp_db.db_path)
        assert reopened.count_rows("users") == 1


class TestUsers:
    """Tests for data owners."""

    def test_get_or_create_returns_same_user(self, temp_db):
        first = temp_db.get_or_create_user("alice")
        second = temp_db.get_or_create_user("alice")
        assert first.id == second.id
        assert second.display_name == "alice"

    def test_separate_users(self, temp_db):
        assert temp_db.get_or_create_user("alice").id != temp_db.get_or_create_user("bob").id


class TestImportHistory:
    """Tests for the import audit trail."""

    def test_newest_first(self, temp_db, user_id):
        temp_db.record_import(ImportRecord(user_id, "apple_health", "export.xml", 10, "success"))
        temp_db.record_import(ImportRecord(user_id, "workout_routes", "routes", 0, "failed", "bad.gpx: malformed"))

        history = temp_db.get_import_history(user_id)
        assert [h.source_type for h in history] == ["workout_routes", "apple_health"]
        assert history[0].error_log == "bad.gpx: malformed"
        assert history[0].imported_at is not None

    def test_status_constrained(self, temp_db, user_id):
        with pytest.raises(sqlite3.IntegrityError):
            temp_db.record_import(ImportRecord(user_id, "apple_health", "export.xml", 0, "exploded"))


class TestRouteMatching:
    """Tests for the overlap query used by the route matcher."""

    def test_start_inside_interval(self, temp_db, user_id):
        workout_id = add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:10:00+00:00") == workout_id

    def test_tolerance_before_start(self, temp_db, user_id):
        workout_id = add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T11:56:00+00:00") == workout_id
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T11:54:00+00:00") is None

    def test_tolerance_after_end(self, temp_db, user_id):
        add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:34:00+00:00") is not None
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:40:00+00:00") is None

    def test_custom_tolerance(self, temp_db, user_id):
        add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:40:00+00:00", tolerance_minutes=15) is not None

    def test_latest_start_wins(self, temp_db, user_id):
        add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T08:00:00-05:00")
        later = add_workout(temp_db, user_id, "W2", "2024-01-15T07:20:00-05:00", "2024-01-15T07:50:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:30:00+00:00") == later

    def test_equal_starts_prefer_latest_row(self, temp_db, user_id):
        add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        second = add_workout(temp_db, user_id, "W2", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:05:00+00:00") == second

    def test_other_users_ignored(self, temp_db, user_id):
        other = temp_db.get_or_create_user("bob").id
        add_workout(temp_db, other, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.find_workout_for_route(user_id, "2024-01-15T12:10:00+00:00") is None


class TestRoutes:
    """Tests for storing routes."""

    def test_link_flags_workout(self, temp_db, user_id):
        workout_id = add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        temp_db.link_route(WorkoutRoute(
            workout_id=workout_id,
            file_path="route_1.gpx",
            point_count=1,
            points_json='[{"lat": 40.7, "lon": -73.9}]',
        ))

        assert temp_db.get_workout(workout_id).has_route is True
        assert temp_db.get_route_points(workout_id) == [{"lat": 40.7, "lon": -73.9}]

    def test_relink_replaces_route(self, temp_db, user_id):
        workout_id = add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        temp_db.link_route(WorkoutRoute(workout_id=workout_id, file_path="a.gpx"))
        temp_db.link_route(WorkoutRoute(workout_id=workout_id, file_path="b.gpx"))

        assert temp_db.count_rows("workout_routes") == 1
        assert temp_db.get_route_for_workout(workout_id).file_path == "b.gpx"

    def test_no_route(self, temp_db, user_id):
        workout_id = add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        assert temp_db.get_route_points(workout_id) == []


class TestStats:
    """Tests for row counts."""

    def test_stats_cover_every_table(self, temp_db):
        stats = temp_db.get_stats()
        assert stats["users"] == 0
        assert stats["db_path"] == str(temp_db.db_path)

    def test_unknown_table_rejected(self, temp_db):
        with pytest.raises(ValueError):
            temp_db.count_rows("sqlite_master")

    def test_filter_by_activity_type(self, temp_db, user_id):
        add_workout(temp_db, user_id, "W1", "2024-01-15T07:00:00-05:00", "2024-01-15T07:30:00-05:00")
        add_workout(temp_db, user_id, "W2", "2024-01-16T07:00:00-05:00", "2024-01-16T07:30:00-05:00", "cycling")
        assert [w.uuid for w in temp_db.get_workouts(user_id, activity_type="cycling")] == ["W2"]
