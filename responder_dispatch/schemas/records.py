"""Pydantic schemas for escalations, hospitals and devices."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from responder_dispatch.models.escalation import EscalationLevel
from responder_dispatch.schemas.common import Coordinates, StoredPoint


class EscalationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    emergency_id: str | None = None
    alert_id: str | None = None
    level: EscalationLevel
    reason: str
    resolved: bool
    resolved_at: datetime | None = None
    handled_by: str | None = None
    created_at: datetime


class EscalationResolve(BaseModel):
    handled_by: str | None = None


class HospitalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location: str | None = None
    coordinates: Coordinates | None = None
    total_beds: int = Field(0, ge=0)
    available_beds: int = Field(0, ge=0)
    specialist_available: bool = False
    notes: str | None = None

    @model_validator(mode="after")
    def check_beds(self) -> "HospitalCreate":
        if self.available_beds > self.total_beds:
            raise ValueError("available_beds cannot exceed total_beds")
        return self


class HospitalBedsUpdate(BaseModel):
    """Either counter may be omitted; the result is validated against the stored row."""

    available_beds: int | None = Field(None, ge=0)
    total_beds: int | None = Field(None, ge=0)
    specialist_available: bool | None = None


class HospitalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    location: str | None = None
    coordinates: StoredPoint = None
    total_beds: int
    available_beds: int
    specialist_available: bool
    notes: str | None = None
    updated_at: datetime


class DeviceCreate(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=50)
    coordinates: Coordinates | None = None


class DeviceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str
    name: str
    type: str
    status: str
    location: StoredPoint = None
    last_heartbeat: datetime | None = None


class DeviceAlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str
    alert_type: str
    severity: int
    location: StoredPoint = None
    data: dict[str, Any]
    processed: bool
    emergency_id: str | None = None
    created_at: datetime
