"""Health endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.database import get_db
from responder_dispatch.models import Escalation, Incident, Responder

router = APIRouter(tags=["health"])


class DispatchStatus(BaseModel):
    """Snapshot of the dispatch board."""

    incidents_by_status: dict[str, int]
    available_responders: int
    open_escalations: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    dispatch: DispatchStatus


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with dispatch board counts.

    Fails with 500 if the database cannot be queried.
    """
    by_status = await db.execute(
        select(Incident.status, func.count(Incident.id)).group_by(Incident.status)
    )
    incidents_by_status = {status: count for status, count in by_status.all()}

    available_result = await db.execute(
        select(func.count(Responder.id)).where(Responder.status == "available")
    )
    available = available_result.scalar() or 0

    open_result = await db.execute(
        select(func.count(Escalation.id)).where(Escalation.resolved.is_(False))
    )
    open_escalations = open_result.scalar() or 0

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        dispatch=DispatchStatus(
            incidents_by_status=incidents_by_status,
            available_responders=available,
            open_escalations=open_escalations,
        ),
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness check for container orchestration."""
    return {"status": "alive"}
