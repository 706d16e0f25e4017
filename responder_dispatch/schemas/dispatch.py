"""Request and response bodies for the serverless-style function routes."""

from typing import Any

from pydantic import BaseModel


class AutoAssignRequest(BaseModel):
    emergency_id: str | None = None


class DispatchResponse(BaseModel):
    """
    Outcome of a dispatch attempt.

    Escalation is reported with ``success=False`` and HTTP 200; it is an
    expected operational result, not an error.
    """

    success: bool
    message: str
    assignment_id: str | None = None
    responder_id: str | None = None
    responder_name: str | None = None
    distance: float | None = None
    escalation_id: str | None = None
    level: str | None = None


class IoTAlertRequest(BaseModel):
    device_id: str | None = None
    alert_type: str | None = None
    severity: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    data: dict[str, Any] | None = None


class IoTAlertResponse(BaseModel):
    success: bool
    message: str
    alert_id: str
    emergency_id: str
    dispatch: DispatchResponse | None = None
