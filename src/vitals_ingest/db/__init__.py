"""Database module for storing ingested health data."""

from .database import HealthDatabase
from .models import (
    ActivitySummary,
    BodyMetrics,
    HealthRecord,
    ImportRecord,
    Nutrition,
    UserProfile,
    Workout,
    WorkoutRoute,
    WorkoutStatistic,
)

__all__ = [
    "HealthDatabase",
    "ActivitySummary",
    "BodyMetrics",
    "HealthRecord",
    "ImportRecord",
    "Nutrition",
    "UserProfile",
    "Workout",
    "WorkoutRoute",
    "WorkoutStatistic",
]
