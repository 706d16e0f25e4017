"""API routes for incidents and their assignments."""

import base64
import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.database import get_db
from responder_dispatch.errors import IncidentNotFoundError
from responder_dispatch.geo import format_point
from responder_dispatch.models import Assignment, Incident
from responder_dispatch.models.incident import IncidentStatus
from responder_dispatch.routers.functions import outcome_response
from responder_dispatch.schemas.dispatch import DispatchResponse
from responder_dispatch.schemas.incident import (
    AssignmentOut,
    AssignRequest,
    IncidentCreate,
    IncidentDetailOut,
    IncidentOut,
    IncidentsResponse,
    IncidentStatusUpdate,
)
from responder_dispatch.services.dispatch import DispatchService
from responder_dispatch.services.lifecycle import update_incident_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/incidents", tags=["incidents"])


def _encode_cursor(reported_at: datetime, id: str) -> str:
    """Encode cursor for keyset pagination."""
    cursor_str = f"{reported_at.isoformat()}|{id}"
    return base64.urlsafe_b64encode(cursor_str.encode()).decode()


def _decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Decode cursor for keyset pagination."""
    cursor_str = base64.urlsafe_b64decode(cursor.encode()).decode()
    reported_at, id = cursor_str.split("|", 1)
    return datetime.fromisoformat(reported_at), id


@router.post("", response_model=IncidentOut, status_code=201)
async def report_incident(
    payload: IncidentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Incident:
    """Report a new incident. It starts in ``reported`` awaiting dispatch."""
    incident = Incident(
        type=payload.type,
        description=payload.description,
        location=payload.location,
        coordinates=(
            format_point(payload.coordinates.latitude, payload.coordinates.longitude)
            if payload.coordinates
            else None
        ),
        priority=payload.priority,
        notes=payload.notes,
        status="reported",
    )
    db.add(incident)
    await db.commit()

    logger.info(f"Reported emergency {incident.id} ({incident.type})")
    return incident


@router.get("", response_model=IncidentsResponse)
async def list_incidents(
    db: Annotated[AsyncSession, Depends(get_db)],
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    status: list[IncidentStatus] | None = Query(None, description="Filter by status"),
) -> IncidentsResponse:
    """
    List incidents newest first with cursor pagination.

    The cursor is an opaque string that encodes the position in the result set.
    """
    query = select(Incident).order_by(Incident.reported_at.desc(), Incident.id.desc())

    if cursor:
        try:
            cursor_time, cursor_id = _decode_cursor(cursor)
            query = query.where(
                (Incident.reported_at < cursor_time)
                | ((Incident.reported_at == cursor_time) & (Incident.id < cursor_id))
            )
        except Exception:
            logger.warning(f"Invalid cursor: {cursor}")

    if status:
        query = query.where(Incident.status.in_(status))

    result = await db.execute(query.limit(limit + 1))  # one extra to detect a next page
    rows = list(result.scalars().all())

    has_next = len(rows) > limit
    if has_next:
        rows = rows[:limit]

    next_cursor = None
    if has_next and rows:
        next_cursor = _encode_cursor(rows[-1].reported_at, rows[-1].id)

    return IncidentsResponse(
        incidents=[IncidentOut.model_validate(row) for row in rows],
        next_cursor=next_cursor,
    )


@router.get("/{incident_id}", response_model=IncidentDetailOut)
async def get_incident(
    incident_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IncidentDetailOut:
    """Get an incident with its assignment history."""
    incident = await db.get(Incident, incident_id)
    if incident is None:
        raise IncidentNotFoundError("Emergency not found", details=incident_id)

    result = await db.execute(
        select(Assignment)
        .where(Assignment.emergency_id == incident_id)
        .order_by(Assignment.assigned_at)
    )

    detail = IncidentDetailOut.model_validate(incident)
    detail.assignments = [AssignmentOut.model_validate(a) for a in result.scalars()]
    return detail


@router.patch("/{incident_id}/status", response_model=IncidentOut)
async def change_status(
    incident_id: str,
    payload: IncidentStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Incident:
    """Advance an incident (en route, on scene, resolved, canceled)."""
    return await update_incident_status(db, incident_id, payload.status, payload.notes)


@router.post("/{incident_id}/assignments", response_model=DispatchResponse)
async def assign_responder(
    incident_id: str,
    payload: AssignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DispatchResponse:
    """Assign a dispatcher-chosen responder."""
    outcome = await DispatchService(db).assign(incident_id, payload.responder_id, payload.notes)
    response = outcome_response(outcome)
    response.message = "Responder assigned"
    return response
