"""API routes for responders."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.database import get_db, utcnow
from responder_dispatch.errors import ConflictError, RecordNotFoundError
from responder_dispatch.geo import format_point
from responder_dispatch.models import Assignment, Responder
from responder_dispatch.models.assignment import CLOSED_ASSIGNMENT_STATUSES
from responder_dispatch.models.responder import ResponderStatus
from responder_dispatch.schemas.responder import ResponderCreate, ResponderOut, ResponderUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/responders", tags=["responders"])


async def _get_or_404(db: AsyncSession, responder_id: str) -> Responder:
    responder = await db.get(Responder, responder_id)
    if responder is None:
        raise RecordNotFoundError("Responder not found", details=responder_id)
    return responder


async def _ensure_no_active_assignment(db: AsyncSession, responder_id: str) -> None:
    """A unit still holding an open assignment is freed by closing the incident."""
    result = await db.execute(
        select(Assignment.emergency_id).where(
            Assignment.responder_id == responder_id,
            Assignment.status.not_in(sorted(CLOSED_ASSIGNMENT_STATUSES)),
        )
    )
    emergency_id = result.scalars().first()
    if emergency_id is not None:
        raise ConflictError(
            "Responder has an active assignment", details=f"emergency_id={emergency_id}"
        )


@router.post("", response_model=ResponderOut, status_code=201)
async def register_responder(
    payload: ResponderCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Responder:
    responder = Responder(
        name=payload.name,
        type=payload.type,
        phone=payload.phone,
        status=payload.status,
        coordinates=(
            format_point(payload.coordinates.latitude, payload.coordinates.longitude)
            if payload.coordinates
            else None
        ),
        notes=payload.notes,
        last_status_change=utcnow(),
    )
    db.add(responder)
    await db.commit()
    return responder


@router.get("", response_model=list[ResponderOut])
async def list_responders(
    db: Annotated[AsyncSession, Depends(get_db)],
    status: list[ResponderStatus] | None = Query(None, description="Filter by status"),
) -> list[Responder]:
    """List responders ordered by name."""
    query = select(Responder).order_by(Responder.name, Responder.id)
    if status:
        query = query.where(Responder.status.in_(status))
    result = await db.execute(query)
    return list(result.scalars().all())


@router.get("/{responder_id}", response_model=ResponderOut)
async def get_responder(
    responder_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Responder:
    return await _get_or_404(db, responder_id)


@router.patch("/{responder_id}", response_model=ResponderOut)
async def update_responder(
    responder_id: str,
    payload: ResponderUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Responder:
    """
    Report a unit's status and/or position.

    Position is the latest fix used by dispatch; a status change stamps
    ``last_status_change``. A unit with an open assignment cannot go back
    to ``available`` (409); closing the incident releases it.
    """
    responder = await _get_or_404(db, responder_id)

    if payload.status is not None and payload.status != responder.status:
        if payload.status == "available":
            await _ensure_no_active_assignment(db, responder_id)
        logger.info(f"Responder {responder_id}: {responder.status} -> {payload.status}")
        responder.status = payload.status
        responder.last_status_change = utcnow()
    if payload.coordinates is not None:
        responder.coordinates = format_point(
            payload.coordinates.latitude, payload.coordinates.longitude
        )
    if payload.notes is not None:
        responder.notes = payload.notes

    await db.commit()
    return responder
