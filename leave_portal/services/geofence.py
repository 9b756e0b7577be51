from __future__ import annotations

import logging
from dataclasses import dataclass
from math import asin, cos, floor, radians, sin, sqrt

from leave_portal.models import AttendanceSettings
from leave_portal.settings import get_settings

logger = logging.getLogger("leave_portal.geofence")

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeofenceResult:
    is_valid: bool
    distance_m: int | None = None
    message: str | None = None


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = radians(lat1)
    lon1_rad = radians(lon1)
    lat2_rad = radians(lat2)
    lon2_rad = radians(lon2)

    delta_lat = lat2_rad - lat1_rad
    delta_lon = lon2_rad - lon1_rad

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return EARTH_RADIUS_M * c


def round_meters(value: float) -> int:
    # Half-up, so 0.5 m never rounds towards the even neighbour.
    return int(floor(value + 0.5))


def validate_geofence(
    lat: float,
    lon: float,
    settings_row: AttendanceSettings | None,
    *,
    is_business_trip: bool = False,
) -> GeofenceResult:
    if is_business_trip:
        logger.info("geofence_skipped", extra={"reason": "business_trip"})
        return GeofenceResult(is_valid=True)

    if (
        settings_row is None
        or settings_row.company_latitude is None
        or settings_row.company_longitude is None
    ):
        logger.info("geofence_skipped", extra={"reason": "company_location_not_set"})
        return GeofenceResult(is_valid=True)

    radius = settings_row.attendance_radius_meters or get_settings().default_geofence_radius_m
    distance_value = distance_m(lat, lon, settings_row.company_latitude, settings_row.company_longitude)
    rounded = round_meters(distance_value)
    is_valid = distance_value <= radius

    logger.info(
        "geofence_checked",
        extra={"distance_m": rounded, "radius_m": radius, "is_valid": is_valid},
    )
    if is_valid:
        return GeofenceResult(is_valid=True, distance_m=rounded)

    return GeofenceResult(
        is_valid=False,
        distance_m=rounded,
        message=(
            f"Devi essere entro {radius} metri dall'azienda per registrare la presenza. "
            f"Distanza attuale: {rounded} metri."
        ),
    )
