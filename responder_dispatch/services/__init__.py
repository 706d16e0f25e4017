"""Services for dispatch, incident lifecycle and alert intake."""

from responder_dispatch.services.alerts import AlertIntakeService
from responder_dispatch.services.dispatch import Assigned, DispatchService, Escalated

__all__ = ["AlertIntakeService", "Assigned", "DispatchService", "Escalated"]
