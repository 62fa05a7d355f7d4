"""
Streaming parser for Apple Health export.xml files.

The export can be several gigabytes, so it is walked with
``lxml.etree.iterparse`` start/end events and every top-level element is
cleared once it closes. Attributes carry all of the data, so elements are
decoded on their start event.

Only one composite element is ever open at a time: the Workout currently
being assembled. It lives in a single slot alongside the list of its
WorkoutStatistics, and both are cleared together when the Workout closes.

Usage:
    writer = BatchWriter(db)
    stats = AppleHealthXMLParser(user_id, writer).parse(Path("export.xml"))
"""

import logging
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, List, Mapping, Optional, Union

from lxml import etree

from ...db.models import (
    ActivitySummary,
    HealthRecord,
    ParseStats,
    UserProfile,
    Workout,
    WorkoutStatistic,
)
from ...exceptions import ExportStreamError
from ...utils.dates import parse_apple_health_date, parse_duration
from ...utils.units import (
    kj_to_kcal,
    meters_to_km,
    miles_to_km,
    normalize_metric_type,
    normalize_record,
    normalize_workout_type,
    parse_number,
)
from ..writer import BatchWriter
from .reconciler import reconcile_workout

logger = logging.getLogger(__name__)

Source = Union[str, Path, BinaryIO]

PROFILE_PREFIXES = {
    "HKCharacteristicTypeIdentifierBiologicalSex": "HKBiologicalSex",
    "HKCharacteristicTypeIdentifierBloodType": "HKBloodType",
    "HKCharacteristicTypeIdentifierFitzpatrickSkinType": "HKFitzpatrickSkinType",
}

DEFAULT_DATE_OF_BIRTH = "1900-01-01"


class ParserState(str, Enum):
    IDLE = "idle"
    IN_RECORD = "in_record"
    IN_WORKOUT = "in_workout"
    IN_ACTIVITY_SUMMARY = "in_activity_summary"
    IN_PROFILE = "in_profile"


# ---------------------------------------------------------------------------
# Element decoders: attributes -> entity, or None when a required
# attribute is missing or unusable.
# ---------------------------------------------------------------------------

def decode_record(user_id: int, attrs: Mapping[str, str]) -> Optional[HealthRecord]:
    """Decode a Record element. Requires `type` and a numeric `value`."""
    type_id = attrs.get("type")
    raw_value = attrs.get("value")
    if not type_id or not raw_value:
        return None

    normalized = normalize_record(type_id, attrs.get("unit"), raw_value)
    if normalized is None:
        return None
    metric_type, unit, value = normalized

    creation = attrs.get("creationDate")
    return HealthRecord(
        user_id=user_id,
        metric_type=metric_type,
        value=value,
        unit=unit,
        source_name=attrs.get("sourceName") or "Unknown",
        source_version=attrs.get("sourceVersion"),
        device=attrs.get("device"),
        start_date=parse_apple_health_date(attrs.get("startDate")),
        end_date=parse_apple_health_date(attrs.get("endDate")),
        creation_date=parse_apple_health_date(creation) if creation else None,
    )


def _workout_distance(attrs: Mapping[str, str]) -> Optional[float]:
    value = parse_number(attrs.get("totalDistance"))
    if value is None:
        return None
    unit = attrs.get("totalDistanceUnit")
    if unit == "mi":
        return miles_to_km(value)
    if unit == "m":
        return meters_to_km(value)
    if unit in (None, "", "km"):
        return value
    return None


def _workout_energy(attrs: Mapping[str, str]) -> Optional[float]:
    value = parse_number(attrs.get("totalEnergyBurned"))
    if value is None:
        return None
    unit = attrs.get("totalEnergyBurnedUnit")
    if unit in ("Cal", "kcal"):
        return value
    if unit == "kJ":
        return kj_to_kcal(value)
    return None


def decode_workout(user_id: int, attrs: Mapping[str, str]) -> Workout:
    """Seed a Workout from the attributes present on the element."""
    return Workout(
        user_id=user_id,
        uuid=attrs.get("uuid") or None,
        activity_type=normalize_workout_type(attrs.get("workoutActivityType")),
        start_date=parse_apple_health_date(attrs.get("startDate")),
        end_date=parse_apple_health_date(attrs.get("endDate")),
        duration_minutes=parse_duration(attrs.get("duration"), attrs.get("durationUnit")),
        total_distance_km=_workout_distance(attrs),
        total_energy_kcal=_workout_energy(attrs),
        source_name=attrs.get("sourceName"),
        source_version=attrs.get("sourceVersion"),
        device=attrs.get("device"),
        has_route=False,
    )


def decode_workout_statistic(attrs: Mapping[str, str]) -> Optional[WorkoutStatistic]:
    type_id = attrs.get("type")
    if not type_id:
        return None
    return WorkoutStatistic(
        type=normalize_metric_type(type_id),
        sum=parse_number(attrs.get("sum")),
        average=parse_number(attrs.get("average")),
        minimum=parse_number(attrs.get("minimum")),
        maximum=parse_number(attrs.get("maximum")),
        unit=attrs.get("unit"),
    )


def _optional_int(text: Optional[str]) -> Optional[int]:
    value = parse_number(text)
    return int(value) if value is not None else None


def decode_activity_summary(user_id: int, attrs: Mapping[str, str]) -> Optional[ActivitySummary]:
    """Decode an ActivitySummary element. Requires `dateComponents`."""
    date = attrs.get("dateComponents")
    if not date:
        return None
    return ActivitySummary(
        user_id=user_id,
        date=date,
        active_energy_burned=parse_number(attrs.get("activeEnergyBurned")),
        active_energy_goal=parse_number(attrs.get("activeEnergyBurnedGoal")),
        move_time_minutes=parse_number(attrs.get("appleMoveTime")),
        move_time_goal=parse_number(attrs.get("appleMoveTimeGoal")),
        exercise_time_minutes=parse_number(attrs.get("appleExerciseTime")),
        exercise_time_goal=parse_number(attrs.get("appleExerciseTimeGoal")),
        stand_hours=_optional_int(attrs.get("appleStandHours")),
        stand_hours_goal=_optional_int(attrs.get("appleStandHoursGoal")),
    )


def strip_characteristic(attrs: Mapping[str, str], key: str) -> Optional[str]:
    """Characteristic value without its HealthKit prefix, e.g. HKBloodTypeOPositive -> OPositive."""
    value = attrs.get(key)
    if not value:
        return None
    prefix = PROFILE_PREFIXES.get(key)
    if prefix and value.startswith(prefix):
        value = value[len(prefix):]
    return value or None


def decode_profile(user_id: int, attrs: Mapping[str, str]) -> UserProfile:
    return UserProfile(
        user_id=user_id,
        date_of_birth=attrs.get("HKCharacteristicTypeIdentifierDateOfBirth") or DEFAULT_DATE_OF_BIRTH,
        biological_sex=strip_characteristic(attrs, "HKCharacteristicTypeIdentifierBiologicalSex"),
        blood_type=strip_characteristic(attrs, "HKCharacteristicTypeIdentifierBloodType"),
        fitzpatrick_skin_type=strip_characteristic(attrs, "HKCharacteristicTypeIdentifierFitzpatrickSkinType"),
        cardio_fitness_medications_use=attrs.get("HKCharacteristicTypeIdentifierCardioFitnessMedicationsUse") or None,
    )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class AppleHealthXMLParser:
    """State machine over the element events of one export stream.

    The event handlers (`on_element_open`, `on_element_close`,
    `on_stream_end`) can be driven directly; `parse` feeds them from lxml.
    """

    def __init__(self, user_id: int, writer: BatchWriter):
        self.user_id = user_id
        self.writer = writer
        self.stats = ParseStats()
        self.state = ParserState.IDLE

        self._workout: Optional[Workout] = None
        self._workout_stats: List[WorkoutStatistic] = []
        self._workout_entries: Dict[str, str] = {}
        # Elements open below the current Workout; 1 means a direct child
        self._workout_depth = 0

        self._records_baseline = writer.committed_for(HealthRecord)
        self._workouts_baseline = writer.committed_for(Workout)
        self._writer_errors_baseline = len(writer.errors)

    def parse(self, source: Source) -> ParseStats:
        """Parse a whole export from a path or binary stream.

        Raises:
            ExportStreamError: The stream is not well-formed XML or cannot
                be read. Buffered rows not yet committed are discarded.
        """
        if isinstance(source, Path):
            source = str(source)

        depth = 0
        try:
            context = etree.iterparse(
                source,
                events=("start", "end"),
                huge_tree=True,
                resolve_entities=False,
                no_network=True,
            )
            for event, elem in context:
                if event == "start":
                    depth += 1
                    self.on_element_open(elem.tag, elem.attrib)
                    continue

                self.on_element_close(elem.tag)
                # Free each top-level element (and its finished siblings)
                if depth == 2:
                    elem.clear()
                    while elem.getprevious() is not None:
                        del elem.getparent()[0]
                depth -= 1
        except etree.XMLSyntaxError as e:
            self._abort()
            logger.error(f"XML parsing error: {e}")
            raise ExportStreamError(f"Corrupt export stream: {e}", line=e.lineno) from e
        except OSError as e:
            self._abort()
            logger.error(f"Could not read export stream: {e}")
            raise ExportStreamError(f"Unreadable export stream: {e}") from e

        return self.on_stream_end()

    # -- events ------------------------------------------------------------

    def on_element_open(self, name: str, attrs: Mapping[str, str]) -> None:
        if self.state == ParserState.IN_WORKOUT and name != "Workout":
            self._workout_depth += 1
        try:
            if name == "Record":
                self._open_record(attrs)
            elif name == "Workout":
                self._open_workout(attrs)
            elif name == "WorkoutStatistics" and self.state == ParserState.IN_WORKOUT:
                stat = decode_workout_statistic(attrs)
                if stat is not None:
                    self._workout_stats.append(stat)
            elif name == "MetadataEntry" and self.state == ParserState.IN_WORKOUT and self._workout_depth == 1:
                # WorkoutRoute and WorkoutEvent children carry their own entries
                key = attrs.get("key")
                if key:
                    self._workout_entries[key] = attrs.get("value", "")
            elif name == "ActivitySummary":
                self._open_activity_summary(attrs)
            elif name == "Me":
                self._open_profile(attrs)
        except (ValueError, TypeError) as e:
            self.stats.errors.append(f"Parse error in {name}: {e}")

    def on_element_close(self, name: str) -> None:
        if name == "Workout" and self.state == ParserState.IN_WORKOUT:
            self._close_workout()
        elif self.state == ParserState.IN_WORKOUT:
            self._workout_depth = max(0, self._workout_depth - 1)
        elif name == "Record" and self.state == ParserState.IN_RECORD:
            self.state = ParserState.IDLE
        elif name == "ActivitySummary" and self.state == ParserState.IN_ACTIVITY_SUMMARY:
            self.state = ParserState.IDLE
        elif name == "Me" and self.state == ParserState.IN_PROFILE:
            self.state = ParserState.IDLE

    def on_stream_end(self) -> ParseStats:
        """Flush every remaining buffer and finalize the counters."""
        self.writer.flush()

        self.stats.records_processed = self.writer.committed_for(HealthRecord) - self._records_baseline
        self.stats.workouts_processed = self.writer.committed_for(Workout) - self._workouts_baseline
        self.stats.errors.extend(self.writer.errors[self._writer_errors_baseline:])

        logger.info(
            f"Records: {self.stats.records_processed:,}, "
            f"Workouts: {self.stats.workouts_processed:,}, "
            f"Activities: {self.stats.activities_processed:,}"
        )
        if self.stats.records_skipped:
            logger.info(f"Skipped {self.stats.records_skipped:,} records without a usable value")
        if self.stats.errors:
            logger.warning(f"Encountered {len(self.stats.errors)} errors during parsing")
        return self.stats

    # -- handlers ----------------------------------------------------------

    def _open_record(self, attrs: Mapping[str, str]) -> None:
        if self.state == ParserState.IDLE:
            self.state = ParserState.IN_RECORD

        record = decode_record(self.user_id, attrs)
        if record is None:
            self.stats.records_skipped += 1
            logger.debug(f"Skipping record type={attrs.get('type')!r} value={attrs.get('value')!r}")
            return
        self.writer.enqueue(record)

    def _open_workout(self, attrs: Mapping[str, str]) -> None:
        if self.state == ParserState.IN_WORKOUT:
            logger.warning("Workout opened before the previous one closed; discarding the previous one")
        self._workout = decode_workout(self.user_id, attrs)
        self._workout_stats = []
        self._workout_entries = {}
        self._workout_depth = 0
        self.state = ParserState.IN_WORKOUT

    def _close_workout(self) -> None:
        workout = reconcile_workout(self._workout, self._workout_stats, self._workout_entries)
        self._workout = None
        self._workout_stats = []
        self._workout_entries = {}
        self._workout_depth = 0
        self.state = ParserState.IDLE
        self.writer.enqueue(workout)

    def _open_activity_summary(self, attrs: Mapping[str, str]) -> None:
        self.state = ParserState.IN_ACTIVITY_SUMMARY
        summary = decode_activity_summary(self.user_id, attrs)
        if summary is None:
            logger.debug("Skipping ActivitySummary without dateComponents")
            return
        if self.writer.write_now(summary):
            self.stats.activities_processed += 1

    def _open_profile(self, attrs: Mapping[str, str]) -> None:
        self.state = ParserState.IN_PROFILE
        if self.writer.write_now(decode_profile(self.user_id, attrs)):
            logger.info("User profile imported")

    def _abort(self) -> None:
        self.writer.discard()
        self._workout = None
        self._workout_stats = []
        self._workout_entries = {}
        self._workout_depth = 0
        self.state = ParserState.IDLE


def parse_apple_health_xml(
    user_id: int,
    source: Source,
    writer: BatchWriter,
) -> ParseStats:
    """Parse an export into the writer's database. See AppleHealthXMLParser."""
    return AppleHealthXMLParser(user_id, writer).parse(source)
