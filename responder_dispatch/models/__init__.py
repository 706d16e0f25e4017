"""Database models."""

from responder_dispatch.models.assignment import Assignment
from responder_dispatch.models.device import DeviceAlert, IoTDevice
from responder_dispatch.models.escalation import Escalation
from responder_dispatch.models.hospital import Hospital
from responder_dispatch.models.incident import Incident
from responder_dispatch.models.responder import Responder

__all__ = [
    "Assignment",
    "DeviceAlert",
    "Escalation",
    "Hospital",
    "Incident",
    "IoTDevice",
    "Responder",
]
