"""Pydantic schemas for API request/response validation."""

from responder_dispatch.schemas.common import Coordinates
from responder_dispatch.schemas.dispatch import DispatchResponse, IoTAlertResponse
from responder_dispatch.schemas.incident import IncidentDetailOut, IncidentOut, IncidentsResponse
from responder_dispatch.schemas.responder import ResponderOut

__all__ = [
    "Coordinates",
    "DispatchResponse",
    "IncidentDetailOut",
    "IncidentOut",
    "IncidentsResponse",
    "IoTAlertResponse",
    "ResponderOut",
]
