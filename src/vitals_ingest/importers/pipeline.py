"""
Import pipeline: runs each phase for one user and records its outcome.

Phases:
1. Apple Health export.xml -> records, workouts, activity summaries, profile
2. Workout routes (GPX) -> matched to the workouts written by phase 1

Each phase appends one row to import_history as soon as it finishes,
before the next phase starts. A phase is ``success`` when its error list
is empty and ``failed`` otherwise.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config import Settings, get_settings
from ..db.database import HealthDatabase
from ..db.models import ImportRecord
from ..exceptions import ExportNotFoundError, ExportStreamError
from ..utils.log_sanitizer import sanitize_string
from .apple_health.xml_parser import parse_apple_health_xml
from .workout_routes import RouteMatcher
from .writer import BatchWriter, FlushCallback

logger = logging.getLogger(__name__)

APPLE_HEALTH = "apple_health"
WORKOUT_ROUTES = "workout_routes"

# Errors stored per import_history row
MAX_LOGGED_ERRORS = 50


@dataclass
class ImportResult:
    """Outcome of one import phase."""
    source_type: str
    source_file: str
    records_imported: int = 0
    errors: List[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    @property
    def status(self) -> str:
        return "success" if not self.errors else "failed"

    def to_record(self, user_id: int) -> ImportRecord:
        error_log = None
        if self.errors:
            error_log = sanitize_string("\n".join(self.errors[:MAX_LOGGED_ERRORS]))
        return ImportRecord(
            user_id=user_id,
            source_type=self.source_type,
            source_file=self.source_file,
            records_imported=self.records_imported,
            status=self.status,
            error_log=error_log,
        )

    def to_dict(self) -> dict:
        return {
            "source_type": self.source_type,
            "source_file": self.source_file,
            "records_imported": self.records_imported,
            "status": self.status,
            "errors": list(self.errors),
            "details": dict(self.details),
        }


@dataclass
class ImportSummary:
    """Aggregate of every phase run for one user."""
    username: str
    user_id: int
    results: List[ImportResult] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(r.records_imported for r in self.results)

    @property
    def errors(self) -> List[str]:
        return [error for r in self.results for error in r.errors]

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "user_id": self.user_id,
            "total_records": self.total_records,
            "errors": self.errors,
            "results": [r.to_dict() for r in self.results],
        }


def _log_progress(table: str, batch_count: int, total: int) -> None:
    logger.info(f"Imported {total:,} rows into {table}")


def import_apple_health(
    db: HealthDatabase,
    user_id: int,
    export_path: Path,
    settings: Optional[Settings] = None,
    on_flush: Optional[FlushCallback] = None,
) -> ImportResult:
    """Run the export.xml phase.

    A missing file or a corrupt stream ends the phase as failed; rows from
    batches committed before a stream error stay in the database.
    """
    settings = settings or get_settings()
    export_path = Path(export_path)
    result = ImportResult(source_type=APPLE_HEALTH, source_file=str(export_path))

    if not export_path.is_file():
        error = ExportNotFoundError(str(export_path))
        logger.error(error.message)
        result.errors.append(error.message)
        return result

    logger.info(f"Importing Apple Health export from {export_path}")
    writer = BatchWriter(db, batch_sizes=settings.batch_sizes(), on_flush=on_flush or _log_progress)
    try:
        stats = parse_apple_health_xml(user_id, export_path, writer)
    except ExportStreamError as e:
        result.errors.append(e.message)
        result.records_imported = sum(writer.committed.values())
        result.errors.extend(writer.errors)
        return result

    result.records_imported = stats.total
    result.errors.extend(stats.errors)
    result.details = stats.to_dict()
    return result


def import_workout_routes(
    db: HealthDatabase,
    user_id: int,
    routes_dir: Path,
    settings: Optional[Settings] = None,
) -> ImportResult:
    """Run the GPX route phase. A missing directory is not an error."""
    settings = settings or get_settings()
    routes_dir = Path(routes_dir)
    result = ImportResult(source_type=WORKOUT_ROUTES, source_file=str(routes_dir))

    if not routes_dir.is_dir():
        logger.warning(f"No workout routes directory at {routes_dir}")
        return result

    matcher = RouteMatcher(db, tolerance_minutes=settings.route_match_tolerance_minutes)
    stats = matcher.import_directory(user_id, routes_dir)
    result.records_imported = stats.linked_to_workouts
    result.errors.extend(stats.errors)
    result.details = stats.to_dict()
    return result


def import_health_data(
    username: str,
    data_path: Optional[Path] = None,
    db: Optional[HealthDatabase] = None,
    settings: Optional[Settings] = None,
    skip_apple_health: bool = False,
    skip_workout_routes: bool = False,
) -> ImportSummary:
    """Import everything found under ``<data_path>/<username>/apple-health/``."""
    settings = settings or get_settings()
    data_path = Path(data_path or settings.data_path)
    db = db or HealthDatabase(settings.db_path)

    user = db.get_or_create_user(username)
    summary = ImportSummary(username=username, user_id=user.id)
    apple_dir = data_path / username / "apple-health"

    if not skip_apple_health:
        _record_phase(db, summary, import_apple_health(db, user.id, apple_dir / "export.xml", settings))

    # Routes need the workouts from the export phase to match against
    if not skip_workout_routes:
        _record_phase(db, summary, import_workout_routes(db, user.id, apple_dir / "workout-routes", settings))

    return summary


def _record_phase(db: HealthDatabase, summary: ImportSummary, result: ImportResult) -> None:
    db.record_import(result.to_record(summary.user_id))
    summary.results.append(result)
    logger.info(
        f"{result.source_type}: {result.status}, "
        f"{result.records_imported:,} imported, {len(result.errors)} errors"
    )
