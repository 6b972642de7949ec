from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt

from hrpay.models import OfficeLocation

EARTH_RADIUS_M = 6371000.0

NO_GPS_NAME = "No GPS data"
NO_GPS_ADDRESS = "Location was not captured for this entry."
NO_DIRECTORY_NAME = "Waiting for location directory"
OUTSIDE_NAME = "Outside registered locations"


@dataclass(frozen=True, slots=True)
class LocationDetails:
    name: str
    address: str
    coordinates: str | None
    is_within_allowed_area: bool
    office_id: int | None = None
    distance_m: float | None = None


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


def parse_coordinates(location: str | None) -> tuple[float, float] | None:
    """Parse a ``"lat,lng"`` string as sent by the clock-in client."""
    if not location:
        return None
    parts = location.split(",")
    if len(parts) < 2:
        return None
    try:
        lat = float(parts[0].strip())
        lng = float(parts[1].strip())
    except ValueError:
        return None
    if lat != lat or lng != lng:  # NaN
        return None
    return lat, lng


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def resolve_location_details(
    location: str | None,
    offices: Sequence[OfficeLocation],
) -> LocationDetails:
    coords = parse_coordinates(location)
    if coords is None:
        return LocationDetails(
            name=NO_GPS_NAME,
            address=NO_GPS_ADDRESS,
            coordinates=None,
            is_within_allowed_area=False,
        )

    lat, lng = coords
    coord_string = format_coordinates(lat, lng)
    if not offices:
        return LocationDetails(
            name=NO_DIRECTORY_NAME,
            address=coord_string,
            coordinates=coord_string,
            is_within_allowed_area=False,
        )

    nearest, nearest_distance = min(
        ((office, distance_m(lat, lng, office.latitude, office.longitude)) for office in offices),
        key=lambda item: item[1],
    )
    if nearest_distance <= nearest.radius_meters:
        return LocationDetails(
            name=nearest.name,
            address=nearest.address or coord_string,
            coordinates=coord_string,
            is_within_allowed_area=True,
            office_id=nearest.id,
            distance_m=round(nearest_distance, 2),
        )

    return LocationDetails(
        name=OUTSIDE_NAME,
        address=coord_string,
        coordinates=coord_string,
        is_within_allowed_area=False,
        office_id=nearest.id,
        distance_m=round(nearest_distance, 2),
    )
