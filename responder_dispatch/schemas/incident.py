"""Pydantic schemas for incidents and assignments."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from responder_dispatch.models.assignment import AssignmentStatus
from responder_dispatch.models.incident import IncidentStatus
from responder_dispatch.schemas.common import Coordinates, StoredPoint


class IncidentCreate(BaseModel):
    """Report a new incident."""

    type: str = Field(..., min_length=1, max_length=50)
    description: str | None = None
    location: str | None = Field(None, max_length=255)
    coordinates: Coordinates | None = None
    priority: int = Field(3, ge=1, le=5)
    notes: str | None = None


class AssignmentOut(BaseModel):
    """Assignment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    emergency_id: str
    responder_id: str
    status: AssignmentStatus
    distance_km: float | None = None
    notes: str | None = None
    assigned_at: datetime
    completed_at: datetime | None = None


class IncidentOut(BaseModel):
    """Incident response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    description: str | None = None
    location: str | None = None
    coordinates: StoredPoint = None
    priority: int
    status: IncidentStatus
    device_alert_id: str | None = None
    notes: str | None = None

    reported_at: datetime
    assigned_at: datetime | None = None
    resolved_at: datetime | None = None


class IncidentDetailOut(IncidentOut):
    """Incident with its assignment history."""

    assignments: list[AssignmentOut] = []


class IncidentsResponse(BaseModel):
    """Paginated response for incidents."""

    incidents: list[IncidentOut]
    next_cursor: str | None = None


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus
    notes: str | None = None


class AssignRequest(BaseModel):
    """Dispatcher-chosen responder for an incident."""

    responder_id: str
    notes: str | None = None
