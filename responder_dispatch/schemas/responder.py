"""Pydantic schemas for responders."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from responder_dispatch.models.responder import ResponderStatus
from responder_dispatch.schemas.common import Coordinates, StoredPoint


class ResponderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=50)
    phone: str | None = None
    status: ResponderStatus = "available"
    coordinates: Coordinates | None = None
    notes: str | None = None


class ResponderUpdate(BaseModel):
    """Status and/or position change reported by a unit."""

    status: ResponderStatus | None = None
    coordinates: Coordinates | None = None
    notes: str | None = None


class ResponderOut(BaseModel):
    """Responder response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    phone: str | None = None
    status: ResponderStatus
    coordinates: StoredPoint = None
    notes: str | None = None
    last_status_change: datetime | None = None
