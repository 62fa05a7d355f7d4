"""Shared fixtures for ingestion tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vitals_ingest.config import Settings
from vitals_ingest.db.database import HealthDatabase


SAMPLE_EXPORT = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE HealthData [
<!ELEMENT HealthData (ExportDate,Me,(Record|Correlation|Workout|ActivitySummary)*)>
<!ATTLIST HealthData locale CDATA #REQUIRED>
]>
<HealthData locale="en_US">
 <ExportDate value="2024-01-20 10:00:00 -0500"/>
 <Me HKCharacteristicTypeIdentifierDateOfBirth="1990-01-01"
     HKCharacteristicTypeIdentifierBiologicalSex="HKBiologicalSexMale"
     HKCharacteristicTypeIdentifierBloodType="HKBloodTypeOPositive"
     HKCharacteristicTypeIdentifierFitzpatrickSkinType="HKFitzpatrickSkinTypeNotSet"
     HKCharacteristicTypeIdentifierCardioFitnessMedicationsUse="None"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" sourceVersion="17.2"
     unit="count" creationDate="2024-01-15 08:15:00 -0500"
     startDate="2024-01-15 08:00:00 -0500" endDate="2024-01-15 08:10:00 -0500" value="1200"/>
 <Record type="HKQuantityTypeIdentifierBodyMass" sourceName="Scale" unit="lb"
     startDate="2024-01-15 06:30:00 -0500" endDate="2024-01-15 06:30:00 -0500" value="150"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
     startDate="2024-01-15 07:10:00 -0500" endDate="2024-01-15 07:10:00 -0500" value="142">
  <MetadataEntry key="HKMetadataKeyHeartRateMotionContext" value="2"/>
 </Record>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count"
     startDate="2024-01-15 09:00:00 -0500" endDate="2024-01-15 09:10:00 -0500"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30" durationUnit="min"
     sourceName="Watch" sourceVersion="10.2"
     startDate="2024-01-15 07:00:00 -0500" endDate="2024-01-15 07:30:00 -0500">
  <MetadataEntry key="HKIndoorWorkout" value="0"/>
  <WorkoutStatistics type="HKQuantityTypeIdentifierActiveEnergyBurned"
      startDate="2024-01-15 07:00:00 -0500" endDate="2024-01-15 07:30:00 -0500" sum="17.7314" unit="Cal"/>
  <WorkoutStatistics type="HKQuantityTypeIdentifierBasalEnergyBurned"
      startDate="2024-01-15 07:00:00 -0500" endDate="2024-01-15 07:30:00 -0500" sum="5.73425" unit="Cal"/>
  <WorkoutStatistics type="HKQuantityTypeIdentifierDistanceWalkingRunning"
      startDate="2024-01-15 07:00:00 -0500" endDate="2024-01-15 07:30:00 -0500" sum="3" unit="mi"/>
  <WorkoutStatistics type="HKQuantityTypeIdentifierHeartRate"
      startDate="2024-01-15 07:00:00 -0500" endDate="2024-01-15 07:30:00 -0500"
      average="142" minimum="98" maximum="171" unit="count/min"/>
 </Workout>
 <ActivitySummary dateComponents="2024-01-15" activeEnergyBurned="450" activeEnergyBurnedGoal="500"
     activeEnergyBurnedUnit="Cal" appleMoveTime="0" appleMoveTimeGoal="0"
     appleExerciseTime="35" appleExerciseTimeGoal="30" appleStandHours="10" appleStandHoursGoal="12"/>
</HealthData>
"""


def make_gpx(
    start: datetime | None,
    count: int = 10,
    step_seconds: int = 1,
    name: str = "Route 2024-01-15 7:00am",
) -> str:
    """Build a GPX 1.1 document with `count` track points.

    With `start=None` the points carry no timestamps.
    """
    points = []
    for i in range(count):
        time = ""
        if start is not None:
            stamp = (start + timedelta(seconds=i * step_seconds)).strftime("%Y-%m-%dT%H:%M:%SZ")
            time = f"<time>{stamp}</time>"
        points.append(
            f'<trkpt lon="{-73.9857 + i * 0.0001:.6f}" lat="{40.7484 + i * 0.0001:.6f}">'
            f"<ele>{10 + i * 0.1:.1f}</ele>{time}"
            f"<extensions><speed>2.8</speed><course>90.0</course></extensions>"
            f"</trkpt>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<gpx version="1.1" creator="Apple Health Export" xmlns="http://www.topografix.com/GPX/1/1">\n'
        f"<metadata><time>2024-01-15T12:00:00Z</time></metadata>\n"
        f"<trk><name>{name}</name><trkseg>{''.join(points)}</trkseg></trk>\n"
        "</gpx>\n"
    )


def utc(year, month, day, hour, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    db = HealthDatabase(db_path)
    yield db

    # Cleanup (WAL mode leaves side files)
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except OSError:
            pass


@pytest.fixture
def user_id(temp_db) -> int:
    return temp_db.get_or_create_user("alice").id


@pytest.fixture
def settings(temp_db, tmp_path) -> Settings:
    return Settings(db_path=temp_db.db_path, data_path=tmp_path)


@pytest.fixture
def export_file(tmp_path) -> Path:
    path = tmp_path / "export.xml"
    path.write_text(SAMPLE_EXPORT, encoding="utf-8")
    return path
