"""Unit conversion and identifier normalization for health metrics.

Everything here is a pure function. The ingestion path calls
`normalize_record` once per Record element; the converters are also used
by the workout reconciler and the route matcher.
"""

import math
import re
from typing import Optional, Tuple

MILES_TO_KM = 1.60934
LBS_TO_KG = 0.453592
KCAL_TO_KJ = 4.184
METERS_PER_KM = 1000.0


def lbs_to_kg(lbs: float) -> float:
    return lbs * LBS_TO_KG


def kg_to_lbs(kg: float) -> float:
    return kg / LBS_TO_KG


def miles_to_km(miles: float) -> float:
    return miles * MILES_TO_KM


def km_to_miles(km: float) -> float:
    return km / MILES_TO_KM


def kcal_to_kj(kcal: float) -> float:
    return kcal * KCAL_TO_KJ


def kj_to_kcal(kj: float) -> float:
    return kj / KCAL_TO_KJ


def meters_to_km(meters: float) -> float:
    return meters / METERS_PER_KM


def km_to_meters(km: float) -> float:
    return km * METERS_PER_KM


# Source unit -> (canonical unit, forward conversion, inverse conversion).
# Decided on the raw unit, before any renaming.
CONVERSION_RULES = {
    "mi": ("km", miles_to_km, km_to_miles),
    "lb": ("kg", lbs_to_kg, kg_to_lbs),
    "kJ": ("kcal", kj_to_kcal, kcal_to_kj),
    "m": ("km", meters_to_km, km_to_meters),
}

# Pure renames: the value is already in the canonical unit.
UNIT_SYNONYMS = {
    "Cal": "kcal",
    "kcal": "kcal",
    "km": "km",
    "kg": "kg",
    "g": "g",
    "mg": "mg",
    "mcg": "mcg",
    "min": "min",
    "hr": "hr",
    "s": "s",
    "ms": "ms",
    "count": "count",
    "%": "%",
    "degC": "degC",
    "mL": "mL",
    "L": "L",
    "mmHg": "mmHg",
    "count/min": "count/min",
    "dBASPL": "dBASPL",
    "m/s": "m/s",
    "cm": "cm",
}

METRIC_TYPES = {
    # Activity
    "HKQuantityTypeIdentifierStepCount": "steps",
    "HKQuantityTypeIdentifierDistanceWalkingRunning": "walking_running_distance",
    "HKQuantityTypeIdentifierDistanceCycling": "cycling_distance",
    "HKQuantityTypeIdentifierDistanceSwimming": "swimming_distance",
    "HKQuantityTypeIdentifierFlightsClimbed": "flights_climbed",
    "HKQuantityTypeIdentifierAppleExerciseTime": "exercise_time",
    "HKQuantityTypeIdentifierAppleStandTime": "stand_time",
    "HKQuantityTypeIdentifierPushCount": "push_count",
    "HKQuantityTypeIdentifierDistanceWheelchair": "wheelchair_distance",
    "HKQuantityTypeIdentifierSwimmingStrokeCount": "swimming_stroke_count",

    # Heart
    "HKQuantityTypeIdentifierHeartRate": "heart_rate",
    "HKQuantityTypeIdentifierRestingHeartRate": "resting_heart_rate",
    "HKQuantityTypeIdentifierWalkingHeartRateAverage": "walking_heart_rate_avg",
    "HKQuantityTypeIdentifierHeartRateVariabilitySDNN": "heart_rate_variability",
    "HKQuantityTypeIdentifierVO2Max": "vo2_max",
    "HKQuantityTypeIdentifierHeartRateRecoveryOneMinute": "heart_rate_recovery",

    # Body measurements
    "HKQuantityTypeIdentifierBodyMass": "weight",
    "HKQuantityTypeIdentifierBodyMassIndex": "bmi",
    "HKQuantityTypeIdentifierBodyFatPercentage": "body_fat_percent",
    "HKQuantityTypeIdentifierLeanBodyMass": "lean_body_mass",
    "HKQuantityTypeIdentifierHeight": "height",
    "HKQuantityTypeIdentifierWaistCircumference": "waist_circumference",

    # Nutrition
    "HKQuantityTypeIdentifierDietaryEnergyConsumed": "calories",
    "HKQuantityTypeIdentifierDietaryProtein": "protein",
    "HKQuantityTypeIdentifierDietaryCarbohydrates": "carbs",
    "HKQuantityTypeIdentifierDietaryFatTotal": "fat",
    "HKQuantityTypeIdentifierDietaryFatSaturated": "saturated_fat",
    "HKQuantityTypeIdentifierDietaryFatMonounsaturated": "monounsaturated_fat",
    "HKQuantityTypeIdentifierDietaryFatPolyunsaturated": "polyunsaturated_fat",
    "HKQuantityTypeIdentifierDietaryCholesterol": "cholesterol",
    "HKQuantityTypeIdentifierDietarySodium": "sodium",
    "HKQuantityTypeIdentifierDietaryFiber": "fiber",
    "HKQuantityTypeIdentifierDietarySugar": "sugar",
    "HKQuantityTypeIdentifierDietaryCalcium": "calcium",
    "HKQuantityTypeIdentifierDietaryIron": "iron",
    "HKQuantityTypeIdentifierDietaryPotassium": "potassium",
    "HKQuantityTypeIdentifierDietaryVitaminA": "vitamin_a",
    "HKQuantityTypeIdentifierDietaryVitaminB6": "vitamin_b6",
    "HKQuantityTypeIdentifierDietaryVitaminB12": "vitamin_b12",
    "HKQuantityTypeIdentifierDietaryVitaminC": "vitamin_c",
    "HKQuantityTypeIdentifierDietaryVitaminD": "vitamin_d",
    "HKQuantityTypeIdentifierDietaryVitaminE": "vitamin_e",
    "HKQuantityTypeIdentifierDietaryVitaminK": "vitamin_k",
    "HKQuantityTypeIdentifierDietaryZinc": "zinc",
    "HKQuantityTypeIdentifierDietaryMagnesium": "magnesium",
    "HKQuantityTypeIdentifierDietaryWater": "water",
    "HKQuantityTypeIdentifierDietaryCaffeine": "caffeine",

    # Energy
    "HKQuantityTypeIdentifierActiveEnergyBurned": "active_energy_burned",
    "HKQuantityTypeIdentifierBasalEnergyBurned": "basal_energy_burned",

    # Vitals
    "HKQuantityTypeIdentifierBloodPressureSystolic": "blood_pressure_systolic",
    "HKQuantityTypeIdentifierBloodPressureDiastolic": "blood_pressure_diastolic",
    "HKQuantityTypeIdentifierRespiratoryRate": "respiratory_rate",
    "HKQuantityTypeIdentifierBodyTemperature": "body_temperature",
    "HKQuantityTypeIdentifierOxygenSaturation": "oxygen_saturation",
    "HKQuantityTypeIdentifierBloodGlucose": "blood_glucose",

    # Sleep
    "HKQuantityTypeIdentifierSleepAnalysis": "sleep_analysis",

    # Hearing
    "HKQuantityTypeIdentifierEnvironmentalAudioExposure": "audio_exposure",
    "HKQuantityTypeIdentifierHeadphoneAudioExposure": "headphone_audio_exposure",

    # Mobility
    "HKQuantityTypeIdentifierWalkingSpeed": "walking_speed",
    "HKQuantityTypeIdentifierWalkingStepLength": "walking_step_length",
    "HKQuantityTypeIdentifierWalkingAsymmetryPercentage": "walking_asymmetry",
    "HKQuantityTypeIdentifierWalkingDoubleSupportPercentage": "walking_double_support",
    "HKQuantityTypeIdentifierSixMinuteWalkTestDistance": "six_minute_walk_distance",
    "HKQuantityTypeIdentifierStairAscentSpeed": "stair_ascent_speed",
    "HKQuantityTypeIdentifierStairDescentSpeed": "stair_descent_speed",
    "HKQuantityTypeIdentifierAppleWalkingSteadiness": "walking_steadiness",

    # Mindfulness
    "HKQuantityTypeIdentifierMindfulSession": "mindful_session",

    # Other
    "HKQuantityTypeIdentifierElectrodermalActivity": "electrodermal_activity",
    "HKQuantityTypeIdentifierInhalerUsage": "inhaler_usage",
    "HKQuantityTypeIdentifierNumberOfTimesFallen": "falls",
    "HKQuantityTypeIdentifierUVExposure": "uv_exposure",
}

WORKOUT_TYPE_PREFIX = "HKWorkoutActivityType"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_metric_type(identifier: str) -> str:
    """Map a HealthKit type identifier to its canonical metric name.

    Unknown identifiers are returned unchanged.

    Example: "HKQuantityTypeIdentifierStepCount" -> "steps"
    """
    return METRIC_TYPES.get(identifier, identifier)


def normalize_workout_type(identifier: Optional[str]) -> str:
    """Normalize a workout activity type.

    Example: "HKWorkoutActivityTypeTraditionalStrengthTraining"
        -> "traditional_strength_training"
    """
    if not identifier:
        return "other"
    name = identifier.replace(WORKOUT_TYPE_PREFIX, "")
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def standardize_unit(unit: str) -> str:
    """Rename a unit to its canonical spelling without touching the value."""
    return UNIT_SYNONYMS.get(unit, unit)


def parse_number(text: Optional[str]) -> Optional[float]:
    """Parse text as a finite float, or return None."""
    if text is None:
        return None
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def convert_value(value: float, unit: str) -> Tuple[float, str]:
    """Convert a value to its canonical unit.

    The source unit alone decides whether the number is rescaled. Only
    when no conversion rule applies is the unit string standardized.
    """
    rule = CONVERSION_RULES.get(unit)
    if rule is not None:
        canonical_unit, forward, _ = rule
        return forward(value), canonical_unit
    return value, standardize_unit(unit)


def revert_value(value: float, source_unit: str) -> float:
    """Inverse of `convert_value`: express a canonical value in `source_unit`."""
    rule = CONVERSION_RULES.get(source_unit)
    if rule is None:
        return value
    _, _, inverse = rule
    return inverse(value)


def normalize_record(
    type_identifier: str,
    unit: Optional[str],
    raw_value: Optional[str],
) -> Optional[Tuple[str, str, float]]:
    """Normalize a raw (type, unit, value) triple from the export.

    Returns (metric_name, unit, value), or None when the value is not a
    finite number. Records without a unit are counts.
    """
    value = parse_number(raw_value)
    if value is None:
        return None
    converted, canonical_unit = convert_value(value, unit or "count")
    if not math.isfinite(converted):
        return None
    return normalize_metric_type(type_identifier), canonical_unit, converted
