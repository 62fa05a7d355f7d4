"""Fill in workout totals from the workout's WorkoutStatistics children.

Older exports carry totalEnergyBurned / totalDistance as Workout
attributes; newer ones only report them as statistics. The reconciler runs
when a Workout element closes and derives whichever totals are missing.
"""

import dataclasses
import json
from typing import Dict, Iterable, List, Optional

from ...db.models import Workout, WorkoutStatistic
from ...utils.units import kj_to_kcal, meters_to_km, miles_to_km

ACTIVE_ENERGY = "active_energy_burned"
BASAL_ENERGY = "basal_energy_burned"

DISTANCE_TYPES = {
    "walking_running_distance",
    "cycling_distance",
    "swimming_distance",
    "wheelchair_distance",
}

# Energy unit -> factor to kcal
ENERGY_UNITS = {
    "Cal": 1.0,
    "kcal": 1.0,
    "kJ": kj_to_kcal(1.0),
}

# Distance unit -> converter to km; "km" is preferred over the others
DISTANCE_UNITS = {
    "km": lambda value: value,
    "mi": miles_to_km,
    "m": meters_to_km,
}


def derive_energy(statistics: Iterable[WorkoutStatistic]) -> Optional[float]:
    """Active plus basal energy in kcal, or None if neither was reported."""
    total = 0.0
    found = False
    for stat in statistics:
        if stat.type not in (ACTIVE_ENERGY, BASAL_ENERGY) or stat.sum is None:
            continue
        factor = ENERGY_UNITS.get(stat.unit or "")
        if factor is None:
            continue
        total += stat.sum * factor
        found = True
    return total if found else None


def derive_distance(statistics: Iterable[WorkoutStatistic]) -> Optional[float]:
    """Distance in km from the first usable distance statistic.

    Statistics are scanned in stream order. A kilometre entry wins over
    any miles or metres entry; otherwise the first convertible one is used.
    """
    fallback: Optional[float] = None
    for stat in statistics:
        if stat.type not in DISTANCE_TYPES or not stat.sum:
            continue
        convert = DISTANCE_UNITS.get(stat.unit or "")
        if convert is None:
            continue
        if stat.unit == "km":
            return stat.sum
        if fallback is None:
            fallback = convert(stat.sum)
    return fallback


def build_metadata(
    statistics: List[WorkoutStatistic],
    entries: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Serialize every statistic (used or not) plus metadata entries."""
    if not statistics and not entries:
        return None
    blob: dict = {"statistics": [stat.to_dict() for stat in statistics]}
    if entries:
        blob["entries"] = entries
    return json.dumps(blob)


def reconcile_workout(
    workout: Workout,
    statistics: List[WorkoutStatistic],
    entries: Optional[Dict[str, str]] = None,
) -> Workout:
    """Return a copy of `workout` with missing totals derived from `statistics`.

    Totals already set from Workout attributes are never overwritten.
    """
    energy = workout.total_energy_kcal
    if energy is None:
        energy = derive_energy(statistics)

    distance = workout.total_distance_km
    if distance is None:
        distance = derive_distance(statistics)

    return dataclasses.replace(
        workout,
        total_energy_kcal=energy,
        total_distance_km=distance,
        metadata=build_metadata(statistics, entries) or workout.metadata,
    )
