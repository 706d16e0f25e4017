"""Dispatch service: assign the nearest available responder or escalate."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.config import Settings, get_settings
from responder_dispatch.database import utcnow
from responder_dispatch.errors import (
    DispatchError,
    IncidentNotAssignableError,
    IncidentNotFoundError,
    RecordNotFoundError,
    ResponderUnavailableError,
    StorageUnavailableError,
)
from responder_dispatch.geo import GeoPoint, haversine_km, parse_point, require_point
from responder_dispatch.models import Assignment, Escalation, Incident, Responder
from responder_dispatch.services.selector import (
    NO_RESPONDERS_REASON,
    Candidate,
    EscalationDecision,
    EscalationPolicy,
    assignment_note,
    select as select_responder,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Assigned:
    assignment_id: str
    responder_id: str
    responder_name: str
    distance_km: float | None
    outcome: Literal["assigned"] = "assigned"


@dataclass(frozen=True)
class Escalated:
    escalation_id: str
    level: str
    reason: str
    outcome: Literal["escalated"] = "escalated"


DispatchOutcome = Assigned | Escalated


class DispatchService:
    """
    Assigns responders to incidents.

    Every public operation runs as one transaction on the given session:
    the incident row is locked, the responder is claimed with a conditional
    update (available -> on_call), and the assignment plus both status
    changes commit together or not at all. Each attempt is bounded by
    ``storage_timeout_seconds``; timeouts and operational database errors
    are retried ``storage_max_retries`` times before surfacing as
    StorageUnavailableError.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.policy = EscalationPolicy(
            no_responders_level=self.settings.escalation_level_no_responders,
            no_location_level=self.settings.escalation_level_no_location,
        )

    async def auto_assign(self, incident_id: str) -> DispatchOutcome:
        """Assign the nearest available responder to an incident, or escalate."""
        return await self._with_retry("auto-assign", lambda: self._auto_assign_once(incident_id))

    async def assign(
        self,
        incident_id: str,
        responder_id: str,
        notes: str | None = None,
    ) -> Assigned:
        """Assign a specific responder chosen by a dispatcher."""
        return await self._with_retry(
            "assign", lambda: self._assign_once(incident_id, responder_id, notes)
        )

    async def _with_retry(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        attempts = 1 + max(0, self.settings.storage_max_retries)
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(
                    operation(), timeout=self.settings.storage_timeout_seconds
                )
            except DispatchError:
                await self.db.rollback()
                raise
            except IntegrityError as e:
                # Lost a race on the active-assignment unique index
                await self.db.rollback()
                raise IncidentNotAssignableError(
                    "Emergency already has an active assignment", details=str(e.orig)
                ) from e
            except (TimeoutError, OperationalError) as e:
                await self.db.rollback()
                last_error = e
                logger.warning(f"{label} attempt {attempt + 1}/{attempts} failed: {e!r}")
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise StorageUnavailableError("Storage operation failed", details=str(e)) from e

        raise StorageUnavailableError(
            f"Storage unavailable after {attempts} attempts", details=str(last_error)
        ) from last_error

    async def _auto_assign_once(self, incident_id: str) -> DispatchOutcome:
        incident = await self._load_incident(incident_id)
        origin = require_point(incident.coordinates)
        self._ensure_assignable(incident)

        candidates = await self._available_candidates()
        decision = select_responder(origin, candidates, self.policy)

        if isinstance(decision, EscalationDecision):
            return await self._escalate(incident, decision)

        for ranked in decision:
            responder = ranked.candidate
            if not await self._claim_responder(responder.id):
                logger.warning(
                    f"Responder {responder.id} was claimed concurrently; trying next candidate"
                )
                continue

            assignment = await self._record_assignment(
                incident,
                responder.id,
                distance_km=ranked.distance_km,
                notes=assignment_note(ranked.distance_km),
            )
            await self.db.commit()

            logger.info(
                f"Assigned responder {responder.id} to emergency {incident_id} "
                f"({ranked.distance_km:.2f} km)"
            )
            return Assigned(
                assignment_id=assignment.id,
                responder_id=responder.id,
                responder_name=responder.name,
                distance_km=round(ranked.distance_km, 2),
            )

        return await self._escalate(
            incident,
            EscalationDecision(level=self.policy.no_responders_level, reason=NO_RESPONDERS_REASON),
        )

    async def _assign_once(
        self, incident_id: str, responder_id: str, notes: str | None
    ) -> Assigned:
        incident = await self._load_incident(incident_id)
        self._ensure_assignable(incident)

        responder = await self.db.get(Responder, responder_id)
        if responder is None:
            raise RecordNotFoundError("Responder not found", details=responder_id)

        distance = _distance_between(
            parse_point(incident.coordinates), parse_point(responder.coordinates)
        )

        if not await self._claim_responder(responder.id):
            raise ResponderUnavailableError(
                "Responder is not available", details=f"status={responder.status}"
            )

        if notes is None:
            notes = "Manually assigned."
            if distance is not None:
                notes += f" Distance: {distance:.2f}km"

        assignment = await self._record_assignment(
            incident, responder.id, distance_km=distance, notes=notes
        )
        await self.db.commit()

        logger.info(f"Manually assigned responder {responder.id} to emergency {incident_id}")
        return Assigned(
            assignment_id=assignment.id,
            responder_id=responder.id,
            responder_name=responder.name,
            distance_km=round(distance, 2) if distance is not None else None,
        )

    async def _load_incident(self, incident_id: str) -> Incident:
        result = await self.db.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        incident = result.scalar_one_or_none()
        if incident is None:
            raise IncidentNotFoundError("Emergency not found", details=incident_id)
        return incident

    @staticmethod
    def _ensure_assignable(incident: Incident) -> None:
        if incident.status != "reported":
            raise IncidentNotAssignableError(
                "Emergency cannot be assigned", details=f"status={incident.status}"
            )

    async def _available_candidates(self) -> list[Candidate]:
        result = await self.db.execute(
            select(Responder.id, Responder.name, Responder.coordinates)
            .where(Responder.status == "available")
            .order_by(Responder.id)
        )
        return [Candidate(id=row.id, name=row.name, coordinates=row.coordinates) for row in result]

    async def _claim_responder(self, responder_id: str) -> bool:
        """Move a responder from available to on_call; False if someone got there first."""
        result = await self.db.execute(
            update(Responder)
            .where(Responder.id == responder_id, Responder.status == "available")
            .values(status="on_call", last_status_change=utcnow())
        )
        return result.rowcount == 1

    async def _record_assignment(
        self,
        incident: Incident,
        responder_id: str,
        distance_km: float | None,
        notes: str,
    ) -> Assignment:
        now = utcnow()
        assignment = Assignment(
            emergency_id=incident.id,
            responder_id=responder_id,
            status="assigned",
            distance_km=distance_km,
            notes=notes,
            assigned_at=now,
        )
        self.db.add(assignment)

        incident.status = "assigned"
        incident.assigned_at = now

        await self.db.flush()
        return assignment

    async def _escalate(self, incident: Incident, decision: EscalationDecision) -> Escalated:
        """Record an escalation; an open one with the same reason is reused."""
        result = await self.db.execute(
            select(Escalation).where(
                Escalation.emergency_id == incident.id,
                Escalation.reason == decision.reason,
                Escalation.resolved.is_(False),
            )
        )
        escalation = result.scalars().first()

        if escalation is None:
            escalation = Escalation(
                emergency_id=incident.id,
                alert_id=incident.device_alert_id,
                level=decision.level,
                reason=decision.reason,
            )
            self.db.add(escalation)
            await self.db.flush()
            logger.warning(
                f"Escalated emergency {incident.id} ({decision.level}): {decision.reason}"
            )
        else:
            logger.info(f"Emergency {incident.id} already escalated ({escalation.id})")

        await self.db.commit()
        return Escalated(
            escalation_id=escalation.id,
            level=escalation.level,
            reason=escalation.reason,
        )


def _distance_between(a: GeoPoint | None, b: GeoPoint | None) -> float | None:
    if a is None or b is None:
        return None
    return haversine_km(a, b)
