"""Point encoding and great-circle distance.

Locations are stored in the textual point form ``(longitude,latitude)``,
the same text PostgreSQL renders for its ``point`` type.
"""

import math
import re
from typing import NamedTuple

from responder_dispatch.errors import InvalidCoordinateFormatError, MissingCoordinatesError

EARTH_RADIUS_KM = 6371.0

_POINT_RE = re.compile(r"^\s*\(\s*(-?\d+\.?\d*)\s*,\s*(-?\d+\.?\d*)\s*\)\s*$")


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


def parse_point(value: str | None) -> GeoPoint | None:
    """Parse ``(lon,lat)`` text into a GeoPoint, or None if absent or malformed."""
    if not value:
        return None
    match = _POINT_RE.match(value)
    if not match:
        return None
    return GeoPoint(latitude=float(match.group(2)), longitude=float(match.group(1)))


def require_point(value: str | None, what: str = "Emergency") -> GeoPoint:
    """Parse a point that must be present, raising the matching validation error."""
    if value is None or not str(value).strip():
        raise MissingCoordinatesError(f"{what} coordinates not found")
    point = parse_point(value)
    if point is None:
        raise InvalidCoordinateFormatError(
            f"{what} coordinates are invalid",
            details=f"expected '(longitude,latitude)', got {value!r}",
        )
    return point


def _fixed(value: float) -> str:
    # Fixed notation only; parse_point does not accept exponents like 1e-05
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def format_point(latitude: float, longitude: float) -> str:
    """Encode a position as ``(lon,lat)`` text with up to 6 decimals."""
    return f"({_fixed(longitude)},{_fixed(latitude)})"


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    h = min(h, 1.0)  # rounding near antipodes
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))
