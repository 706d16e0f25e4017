"""Incident status transitions driven by dispatcher and responder actions."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.database import utcnow
from responder_dispatch.errors import (
    IncidentNotFoundError,
    InvalidTransitionError,
    StorageUnavailableError,
)
from responder_dispatch.models import Assignment, Incident, Responder
from responder_dispatch.models.assignment import CLOSED_ASSIGNMENT_STATUSES
from responder_dispatch.models.incident import TERMINAL_INCIDENT_STATUSES

logger = logging.getLogger(__name__)

# reported -> assigned belongs to DispatchService and is not listed here.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "reported": frozenset({"resolved", "canceled"}),
    "assigned": frozenset({"en_route", "on_scene", "resolved", "canceled"}),
    "en_route": frozenset({"on_scene", "resolved", "canceled"}),
    "on_scene": frozenset({"resolved", "canceled"}),
    "resolved": frozenset(),
    "canceled": frozenset(),
}

# Assignment status mirrored from the incident status
_ASSIGNMENT_STATUS_FOR = {
    "en_route": "en_route",
    "on_scene": "on_scene",
    "resolved": "completed",
    "canceled": "canceled",
}


async def update_incident_status(
    db: AsyncSession,
    incident_id: str,
    new_status: str,
    notes: str | None = None,
) -> Incident:
    """
    Move an incident to ``new_status``.

    Entering a terminal status closes the active assignment and puts its
    responder back to available. Commits on success.
    """
    result = await db.execute(
        select(Incident)
        .where(Incident.id == incident_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    incident = result.scalar_one_or_none()
    if incident is None:
        raise IncidentNotFoundError("Emergency not found", details=incident_id)

    if new_status not in ALLOWED_TRANSITIONS.get(incident.status, frozenset()):
        raise InvalidTransitionError(
            "Invalid status transition",
            details=f"{incident.status} -> {new_status}",
        )

    now = utcnow()
    previous = incident.status
    incident.status = new_status
    if new_status == "resolved":
        incident.resolved_at = now
    if notes:
        incident.notes = notes

    assignment = await _active_assignment(db, incident.id)
    if assignment is not None:
        assignment.status = _ASSIGNMENT_STATUS_FOR[new_status]
        if new_status in TERMINAL_INCIDENT_STATUSES:
            assignment.completed_at = now
            responder = await db.get(Responder, assignment.responder_id)
            if responder is not None and responder.status == "on_call":
                responder.status = "available"
                responder.last_status_change = now

    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageUnavailableError("Failed to update emergency status", details=str(e)) from e

    logger.info(f"Emergency {incident_id}: {previous} -> {new_status}")
    return incident


async def _active_assignment(db: AsyncSession, incident_id: str) -> Assignment | None:
    result = await db.execute(
        select(Assignment).where(
            Assignment.emergency_id == incident_id,
            Assignment.status.not_in(sorted(CLOSED_ASSIGNMENT_STATUSES)),
        )
    )
    return result.scalar_one_or_none()
