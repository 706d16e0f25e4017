"""Shared schema types."""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from responder_dispatch.geo import parse_point


class Coordinates(BaseModel):
    """Geographic coordinates."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


def _point_from_text(value: Any) -> Any:
    """Accept stored "(lon,lat)" text; malformed text renders as null."""
    if value is None or isinstance(value, (Coordinates, dict)):
        return value
    point = parse_point(str(value))
    if point is None:
        return None
    return {"latitude": point.latitude, "longitude": point.longitude}


StoredPoint = Annotated[Coordinates | None, BeforeValidator(_point_from_text)]
