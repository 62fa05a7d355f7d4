"""Importers that load health exports into the database."""

from .pipeline import (
    ImportResult,
    ImportSummary,
    import_apple_health,
    import_health_data,
    import_workout_routes,
)
from .workout_routes import RouteImportStats, RouteMatcher, parse_gpx_file
from .writer import BatchWriter, ConflictPolicy

__all__ = [
    "BatchWriter",
    "ConflictPolicy",
    "ImportResult",
    "ImportSummary",
    "RouteImportStats",
    "RouteMatcher",
    "import_apple_health",
    "import_health_data",
    "import_workout_routes",
    "parse_gpx_file",
]
