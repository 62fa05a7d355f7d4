"""Tests for the import pipeline."""

import pytest

from conftest import SAMPLE_EXPORT, make_gpx, utc
from vitals_ingest.importers import (
    import_apple_health,
    import_health_data,
    import_workout_routes,
    pipeline,
)


def make_layout(root, username="alice", export=SAMPLE_EXPORT, routes=None):
    """Create <root>/<username>/apple-health/ with an export and route files."""
    apple_dir = root / username / "apple-health"
    apple_dir.mkdir(parents=True)
    if export is not None:
        (apple_dir / "export.xml").write_text(export, encoding="utf-8")
    if routes is not None:
        routes_dir = apple_dir / "workout-routes"
        routes_dir.mkdir()
        for name, content in routes.items():
            (routes_dir / name).write_text(content)
    return apple_dir


class TestImportAppleHealth:
    """Tests for the export phase."""

    def test_success(self, temp_db, user_id, settings, export_file):
        result = import_apple_health(temp_db, user_id, export_file, settings)

        assert result.status == "success"
        assert result.records_imported == 5
        assert result.details["records_processed"] == 3

    def test_missing_export_fails(self, temp_db, user_id, settings, tmp_path):
        result = import_apple_health(temp_db, user_id, tmp_path / "missing.xml", settings)

        assert result.status == "failed"
        assert "Export not found" in result.errors[0]

    def test_corrupt_export_fails(self, temp_db, user_id, settings, tmp_path):
        path = tmp_path / "export.xml"
        path.write_text(SAMPLE_EXPORT[: len(SAMPLE_EXPORT) // 2])

        result = import_apple_health(temp_db, user_id, path, settings)

        assert result.status == "failed"
        assert "Corrupt export stream" in result.errors[0]

    def test_progress_callback(self, temp_db, user_id, settings, export_file):
        tables = []
        import_apple_health(
            temp_db, user_id, export_file, settings,
            on_flush=lambda table, count, total: tables.append(table),
        )
        assert "health_metrics" in tables
        assert "workouts" in tables


class TestImportWorkoutRoutes:
    """Tests for the route phase."""

    def test_missing_directory_is_success(self, temp_db, user_id, settings, tmp_path):
        result = import_workout_routes(temp_db, user_id, tmp_path / "nope", settings)

        assert result.status == "success"
        assert result.records_imported == 0

    def test_failed_file_fails_phase(self, temp_db, user_id, settings, tmp_path):
        (tmp_path / "route.gpx").write_text(make_gpx(None))

        result = import_workout_routes(temp_db, user_id, tmp_path, settings)

        assert result.status == "failed"
        assert result.details["routes_processed"] == 0


class TestImportHealthData:
    """Tests for a full run over the expected folder layout."""

    def test_full_run(self, temp_db, settings, tmp_path):
        make_layout(tmp_path, routes={"route_1.gpx": make_gpx(utc(2024, 1, 15, 11, 58), count=30)})

        summary = import_health_data("alice", data_path=tmp_path, db=temp_db, settings=settings)

        assert summary.success
        assert [r.source_type for r in summary.results] == ["apple_health", "workout_routes"]
        assert summary.total_records == 6

        workout = temp_db.get_workouts(summary.user_id)[0]
        assert workout.has_route is True

        history = temp_db.get_import_history(summary.user_id)
        assert [h.status for h in history] == ["success", "success"]

    def test_missing_export_recorded_as_failed(self, temp_db, settings, tmp_path):
        make_layout(tmp_path, export=None)

        summary = import_health_data("alice", data_path=tmp_path, db=temp_db, settings=settings)

        assert not summary.success
        history = {h.source_type: h for h in temp_db.get_import_history(summary.user_id)}
        assert history["apple_health"].status == "failed"
        assert "Export not found" in history["apple_health"].error_log
        assert history["workout_routes"].status == "success"

    def test_skip_phases(self, temp_db, settings, tmp_path):
        make_layout(tmp_path)

        summary = import_health_data(
            "alice",
            data_path=tmp_path,
            db=temp_db,
            settings=settings,
            skip_workout_routes=True,
        )

        assert [r.source_type for r in summary.results] == ["apple_health"]
        assert temp_db.count_rows("import_history") == 1

    def test_uses_settings_data_path(self, temp_db, settings, tmp_path):
        make_layout(tmp_path, username="bob")

        summary = import_health_data("bob", db=temp_db, settings=settings, skip_workout_routes=True)

        assert summary.username == "bob"
        assert summary.results[0].status == "success"

    def test_finished_phase_recorded_when_later_phase_raises(self, temp_db, settings, tmp_path, monkeypatch):
        """The export phase keeps its history row even if the route phase blows up."""
        make_layout(tmp_path)

        def explode(*args, **kwargs):
            raise RuntimeError("disk vanished")

        monkeypatch.setattr(pipeline, "import_workout_routes", explode)

        with pytest.raises(RuntimeError):
            import_health_data("alice", data_path=tmp_path, db=temp_db, settings=settings)

        user_id = temp_db.get_or_create_user("alice").id
        history = temp_db.get_import_history(user_id)
        assert [(h.source_type, h.status) for h in history] == [("apple_health", "success")]
