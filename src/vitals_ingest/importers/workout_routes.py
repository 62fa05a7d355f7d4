"""
Workout route importer.

Apple Health exports ship one GPX file per recorded route in
``apple-health/workout-routes/``. Each file is matched to the workout
whose interval contains the route's first timestamp (with a few minutes of
tolerance for clock skew between phone and watch) and stored as a
decimated display copy.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, TypeVar, Union

from lxml import etree

from ..db.database import HealthDatabase
from ..db.models import GPXRoute, TrackPoint, WorkoutRoute
from ..exceptions import RouteFileError
from ..utils.dates import to_utc
from ..utils.units import parse_number

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RouteImportStats:
    routes_processed: int = 0
    linked_to_workouts: int = 0
    unlinked: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "routes_processed": self.routes_processed,
            "linked_to_workouts": self.linked_to_workouts,
            "unlinked": self.unlinked,
            "errors": list(self.errors),
        }


def _local_name(elem) -> str:
    return etree.QName(elem).localname


def _child_text(trkpt, name: str) -> Optional[str]:
    for child in trkpt.iter():
        if child is not trkpt and isinstance(child.tag, str) and _local_name(child) == name:
            return (child.text or "").strip() or None
    return None


def _normalize_time(text: Optional[str]) -> Optional[str]:
    dt = to_utc(text) if text else None
    return dt.isoformat() if dt else None


def parse_gpx_file(source: Union[str, Path, BinaryIO]) -> GPXRoute:
    """Stream a GPX file into a GPXRoute.

    Element names are matched without their namespace, so GPX 1.0, 1.1 and
    vendor extensions all work. Timestamps are normalized to UTC.

    Raises:
        RouteFileError: The file is not well-formed XML or cannot be read.
    """
    file_name = Path(source).name if isinstance(source, (str, Path)) else getattr(source, "name", "<stream>")
    if isinstance(source, Path):
        source = str(source)

    route = GPXRoute()
    try:
        for _, elem in etree.iterparse(source, events=("end",), resolve_entities=False, no_network=True):
            if not isinstance(elem.tag, str):
                continue
            name = _local_name(elem)

            if name == "trkpt":
                lat = parse_number(elem.get("lat"))
                lon = parse_number(elem.get("lon"))
                if lat is not None and lon is not None:
                    route.points.append(TrackPoint(
                        lat=lat,
                        lon=lon,
                        ele=parse_number(_child_text(elem, "ele")),
                        time=_normalize_time(_child_text(elem, "time")),
                        speed=parse_number(_child_text(elem, "speed")),
                    ))
                elem.clear()
                while elem.getprevious() is not None:
                    del elem.getparent()[0]
            elif name == "name" and route.name is None:
                parent = elem.getparent()
                if parent is not None and _local_name(parent) in ("trk", "metadata", "rte"):
                    route.name = (elem.text or "").strip() or None
    except etree.XMLSyntaxError as e:
        raise RouteFileError(file_name, f"malformed GPX: {e}") from e
    except OSError as e:
        raise RouteFileError(file_name, f"unreadable: {e}") from e

    timed = [p.time for p in route.points if p.time]
    if timed:
        route.start_time = timed[0]
        route.end_time = timed[-1]
    return route


def decimation_factor(point_count: int) -> int:
    """Keep every 5th point above 5000 points, every 4th above 1000."""
    if point_count > 5000:
        return 5
    if point_count > 1000:
        return 4
    return 1


def decimate(points: Sequence[T], factor: int) -> List[T]:
    """Every `factor`-th element, starting with the first, in original order."""
    if factor <= 1:
        return list(points)
    return list(points[::factor])


class RouteMatcher:
    """Matches route files to a user's already-imported workouts."""

    def __init__(self, db: HealthDatabase, tolerance_minutes: int = 5):
        self.db = db
        self.tolerance_minutes = tolerance_minutes

    def match_route(self, user_id: int, route: GPXRoute) -> Optional[int]:
        """Workout id for a parsed route, or None if nothing overlaps."""
        if not route.has_timestamps:
            return None
        return self.db.find_workout_for_route(user_id, route.start_time, self.tolerance_minutes)

    def import_file(self, user_id: int, path: Path, stats: RouteImportStats) -> None:
        """Parse, match and store one route file, updating `stats`."""
        route = parse_gpx_file(path)
        if not route.has_timestamps:
            raise RouteFileError(path.name, "no timestamped track points")

        stats.routes_processed += 1
        workout_id = self.match_route(user_id, route)
        if workout_id is None:
            stats.unlinked += 1
            logger.debug(f"No workout found for {path.name} starting {route.start_time}")
            return

        display = decimate(route.points, decimation_factor(len(route.points)))
        self.db.link_route(WorkoutRoute(
            workout_id=workout_id,
            file_path=str(path),
            start_date=route.start_time,
            end_date=route.end_time,
            point_count=len(route.points),
            points_json=json.dumps([p.to_dict() for p in display]),
        ))
        stats.linked_to_workouts += 1
        logger.debug(
            f"Linked {path.name} to workout {workout_id} "
            f"({len(route.points)} points, {len(display)} stored)"
        )

    def import_directory(self, user_id: int, routes_dir: Path) -> RouteImportStats:
        """Match every ``*.gpx`` file in `routes_dir`, in file-name order."""
        stats = RouteImportStats()
        files = sorted(Path(routes_dir).glob("*.gpx"))
        logger.info(f"Found {len(files)} route files in {routes_dir}")

        for path in files:
            try:
                self.import_file(user_id, path, stats)
            except RouteFileError as e:
                stats.errors.append(e.message)
                logger.warning(e.message)
            except sqlite3.Error as e:
                stats.errors.append(f"{path.name}: could not store route: {e}")
                logger.warning(f"Could not store route {path.name}: {e}")

        logger.info(
            f"Routes: {stats.routes_processed} processed, "
            f"{stats.linked_to_workouts} linked, {stats.unlinked} unlinked"
        )
        return stats
