"""Data models for ingested health data."""

from dataclasses import dataclass, field, asdict
from typing import List, Optional
import json


@dataclass
class HealthRecord:
    """A single observation (one Record element)."""
    user_id: int
    metric_type: str
    value: float
    unit: str
    source_name: str
    start_date: str
    end_date: str
    source_version: Optional[str] = None
    device: Optional[str] = None
    creation_date: Optional[str] = None
    metadata: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WorkoutStatistic:
    """One WorkoutStatistics child of a Workout. Values stay as exported."""
    type: str
    sum: Optional[float] = None
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    unit: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Workout:
    """A workout session."""
    user_id: int
    activity_type: str
    start_date: str
    end_date: str
    uuid: Optional[str] = None
    duration_minutes: Optional[float] = None
    total_distance_km: Optional[float] = None
    total_energy_kcal: Optional[float] = None
    source_name: Optional[str] = None
    source_version: Optional[str] = None
    device: Optional[str] = None
    has_route: bool = False
    metadata: Optional[str] = None
    id: Optional[int] = None

    @property
    def statistics(self) -> List[dict]:
        """Statistics stored in the metadata blob."""
        if not self.metadata:
            return []
        return json.loads(self.metadata).get("statistics", [])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ActivitySummary:
    """Daily activity ring totals."""
    user_id: int
    date: str
    active_energy_burned: Optional[float] = None
    active_energy_goal: Optional[float] = None
    move_time_minutes: Optional[float] = None
    move_time_goal: Optional[float] = None
    exercise_time_minutes: Optional[float] = None
    exercise_time_goal: Optional[float] = None
    stand_hours: Optional[int] = None
    stand_hours_goal: Optional[int] = None

    @property
    def move_ring_pct(self) -> Optional[float]:
        if not self.active_energy_burned or not self.active_energy_goal:
            return None
        return round(self.active_energy_burned / self.active_energy_goal * 100, 1)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["move_ring_pct"] = self.move_ring_pct
        return d


@dataclass
class UserProfile:
    """Static characteristics from the Me element."""
    user_id: int
    date_of_birth: str = "1900-01-01"
    biological_sex: Optional[str] = None  # Male, Female, Other, NotSet
    blood_type: Optional[str] = None      # e.g. OPositive
    fitzpatrick_skin_type: Optional[str] = None
    cardio_fitness_medications_use: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Nutrition:
    """Daily nutrition totals written by spreadsheet importers."""
    user_id: int
    date: str
    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None
    fiber_g: Optional[float] = None
    sugar_g: Optional[float] = None
    sodium_mg: Optional[float] = None
    water_ml: Optional[float] = None
    source_name: Optional[str] = None


@dataclass
class BodyMetrics:
    """Daily body composition written by spreadsheet importers."""
    user_id: int
    date: str
    weight_kg: Optional[float] = None
    weight_lb: Optional[float] = None
    body_fat_percent: Optional[float] = None
    bmi: Optional[float] = None
    lean_body_mass_kg: Optional[float] = None
    waist_cm: Optional[float] = None
    source_name: Optional[str] = None


@dataclass
class TrackPoint:
    """One trkpt from a route file."""
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[str] = None
    speed: Optional[float] = None

    def to_dict(self) -> dict:
        # Compact form for the stored display copy
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class GPXRoute:
    """A parsed route file."""
    name: Optional[str] = None
    points: List[TrackPoint] = field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @property
    def has_timestamps(self) -> bool:
        return self.start_time is not None


@dataclass
class WorkoutRoute:
    """A route file linked to a workout."""
    workout_id: int
    file_path: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    point_count: int = 0
    points_json: Optional[str] = None
    id: Optional[int] = None


@dataclass
class ImportRecord:
    """Audit row for one import phase."""
    user_id: int
    source_type: str
    source_file: str
    records_imported: int
    status: str  # success, partial, failed
    error_log: Optional[str] = None
    imported_at: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class User:
    """Owner of ingested data."""
    id: int
    username: str
    display_name: str
    created_at: Optional[str] = None


@dataclass
class ParseStats:
    """Counters returned by the export parser."""
    records_processed: int = 0
    workouts_processed: int = 0
    activities_processed: int = 0
    records_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.records_processed + self.workouts_processed + self.activities_processed

    def to_dict(self) -> dict:
        d = asdict(self)
        d["total"] = self.total
        return d
