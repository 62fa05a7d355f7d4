"""Utility helpers: units, dates and log sanitization."""

from .units import normalize_metric_type, normalize_record, normalize_workout_type
from .dates import parse_apple_health_date, parse_duration

__all__ = [
    "normalize_metric_type",
    "normalize_record",
    "normalize_workout_type",
    "parse_apple_health_date",
    "parse_duration",
]
