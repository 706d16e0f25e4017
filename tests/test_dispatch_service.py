"""Tests for DispatchService against the test database."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, ProgrammingError

from responder_dispatch.errors import (
    IncidentNotAssignableError,
    IncidentNotFoundError,
    InvalidCoordinateFormatError,
    MissingCoordinatesError,
    RecordNotFoundError,
    ResponderUnavailableError,
    StorageUnavailableError,
)
from responder_dispatch.models import Assignment, Escalation, Incident, Responder
from responder_dispatch.services.dispatch import Assigned, DispatchService, Escalated
from responder_dispatch.services.selector import NO_LOCATION_REASON, NO_RESPONDERS_REASON

NEAR_POINT = "(39.20,-6.17)"
FAR_POINT = "(39.30,-6.20)"


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def _reload(db_session, model, record_id):
    result = await db_session.execute(
        select(model).where(model.id == record_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestAutoAssign:
    """Tests for DispatchService.auto_assign."""

    @pytest.mark.asyncio
    async def test_assigns_nearest_responder(
        self, db_session, test_settings, add_incident, add_responder
    ):
        """Nearest available responder gets the incident; both records change together."""
        await add_incident(id="inc-1")
        await add_responder(id="near", name="Ambulance 1", coordinates=NEAR_POINT)
        await add_responder(id="far", name="Ambulance 2", coordinates=FAR_POINT)

        outcome = await DispatchService(db_session, test_settings).auto_assign("inc-1")

        assert isinstance(outcome, Assigned)
        assert outcome.responder_id == "near"
        assert outcome.responder_name == "Ambulance 1"
        assert outcome.distance_km == 0.96

        incident = await _reload(db_session, Incident, "inc-1")
        assert incident.status == "assigned"
        assert incident.assigned_at is not None

        near = await _reload(db_session, Responder, "near")
        far = await _reload(db_session, Responder, "far")
        assert near.status == "on_call"
        assert far.status == "available"

        assignment = await _reload(db_session, Assignment, outcome.assignment_id)
        assert assignment.emergency_id == "inc-1"
        assert assignment.responder_id == "near"
        assert assignment.status == "assigned"
        assert assignment.notes == "Auto-assigned. Distance: 0.96km"

    @pytest.mark.asyncio
    async def test_ignores_responders_not_available(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="busy", coordinates=NEAR_POINT, status="on_call")
        await add_responder(id="resting", coordinates=NEAR_POINT, status="on_break")
        await add_responder(id="far", coordinates=FAR_POINT)

        outcome = await DispatchService(db_session, test_settings).auto_assign("inc-1")

        assert outcome.responder_id == "far"

    @pytest.mark.asyncio
    async def test_no_responders_escalates_critical(self, db_session, test_settings, add_incident):
        await add_incident(id="inc-1")

        outcome = await DispatchService(db_session, test_settings).auto_assign("inc-1")

        assert isinstance(outcome, Escalated)
        assert outcome.level == "critical"
        assert outcome.reason == NO_RESPONDERS_REASON

        escalation = await _reload(db_session, Escalation, outcome.escalation_id)
        assert escalation.emergency_id == "inc-1"
        assert escalation.resolved is False

        incident = await _reload(db_session, Incident, "inc-1")
        assert incident.status == "reported"
        assert await _count(db_session, Assignment) == 0

    @pytest.mark.asyncio
    async def test_no_located_responders_escalates_elevated(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="r1", coordinates=None)
        await add_responder(id="r2", coordinates="unknown")

        outcome = await DispatchService(db_session, test_settings).auto_assign("inc-1")

        assert isinstance(outcome, Escalated)
        assert outcome.level == "elevated"
        assert outcome.reason == NO_LOCATION_REASON

        r1 = await _reload(db_session, Responder, "r1")
        assert r1.status == "available"

    @pytest.mark.asyncio
    async def test_repeat_escalation_reuses_open_record(
        self, db_session, test_settings, add_incident
    ):
        await add_incident(id="inc-1")
        service = DispatchService(db_session, test_settings)

        first = await service.auto_assign("inc-1")
        second = await service.auto_assign("inc-1")

        assert first.escalation_id == second.escalation_id
        assert await _count(db_session, Escalation) == 1

    @pytest.mark.asyncio
    async def test_missing_coordinates_writes_nothing(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1", coordinates=None)
        await add_responder(id="r1")

        with pytest.raises(MissingCoordinatesError):
            await DispatchService(db_session, test_settings).auto_assign("inc-1")

        assert await _count(db_session, Assignment) == 0
        assert await _count(db_session, Escalation) == 0
        r1 = await _reload(db_session, Responder, "r1")
        assert r1.status == "available"

    @pytest.mark.asyncio
    async def test_invalid_coordinates(self, db_session, test_settings, add_incident):
        await add_incident(id="inc-1", coordinates="39.2083 -6.1725")

        with pytest.raises(InvalidCoordinateFormatError):
            await DispatchService(db_session, test_settings).auto_assign("inc-1")

    @pytest.mark.asyncio
    async def test_unknown_incident(self, db_session, test_settings):
        with pytest.raises(IncidentNotFoundError):
            await DispatchService(db_session, test_settings).auto_assign("missing")

    @pytest.mark.asyncio
    async def test_already_assigned_incident(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="r1")
        await add_responder(id="r2", coordinates=FAR_POINT)
        service = DispatchService(db_session, test_settings)
        await service.auto_assign("inc-1")

        with pytest.raises(IncidentNotAssignableError):
            await service.auto_assign("inc-1")

        r2 = await _reload(db_session, Responder, "r2")
        assert r2.status == "available"
        assert await _count(db_session, Assignment) == 1

    @pytest.mark.asyncio
    async def test_active_assignment_conflict_rolls_back(
        self, db_session, test_settings, add_incident, add_responder
    ):
        """An existing open assignment blocks a second one at the unique index."""
        await add_incident(id="inc-1")
        await add_responder(id="r0", status="on_call")
        await add_responder(id="r1")
        db_session.add(Assignment(id="a0", emergency_id="inc-1", responder_id="r0"))
        await db_session.commit()

        with pytest.raises(IncidentNotAssignableError):
            await DispatchService(db_session, test_settings).auto_assign("inc-1")

        r1 = await _reload(db_session, Responder, "r1")
        incident = await _reload(db_session, Incident, "inc-1")
        assert r1.status == "available"
        assert incident.status == "reported"
        assert await _count(db_session, Assignment) == 1

    @pytest.mark.asyncio
    async def test_lost_claim_moves_to_next_candidate(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="near", coordinates=NEAR_POINT)
        await add_responder(id="far", coordinates=FAR_POINT)
        service = DispatchService(db_session, test_settings)
        service._claim_responder = AsyncMock(side_effect=[False, True])

        outcome = await service.auto_assign("inc-1")

        assert isinstance(outcome, Assigned)
        assert outcome.responder_id == "far"
        assert [c.args[0] for c in service._claim_responder.await_args_list] == ["near", "far"]

    @pytest.mark.asyncio
    async def test_every_claim_lost_escalates(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="near", coordinates=NEAR_POINT)
        service = DispatchService(db_session, test_settings)
        service._claim_responder = AsyncMock(return_value=False)

        outcome = await service.auto_assign("inc-1")

        assert isinstance(outcome, Escalated)
        assert outcome.level == "critical"

    @pytest.mark.asyncio
    async def test_escalation_links_device_alert(self, db_session, test_settings, add_incident):
        await add_incident(id="inc-1", device_alert_id="alert-1")

        outcome = await DispatchService(db_session, test_settings).auto_assign("inc-1")

        escalation = await _reload(db_session, Escalation, outcome.escalation_id)
        assert escalation.alert_id == "alert-1"


class TestStorageRetry:
    """Tests for retry and timeout handling."""

    @pytest.mark.asyncio
    async def test_operational_error_is_retried(self, db_session, test_settings):
        service = DispatchService(db_session, test_settings)
        expected = Assigned(
            assignment_id="a1", responder_id="r1", responder_name="Unit", distance_km=1.0
        )
        service._auto_assign_once = AsyncMock(
            side_effect=[OperationalError("SELECT 1", {}, Exception("connection reset")), expected]
        )

        outcome = await service.auto_assign("inc-1")

        assert outcome == expected
        assert service._auto_assign_once.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, db_session, test_settings):
        service = DispatchService(db_session, test_settings)
        service._auto_assign_once = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection reset"))
        )

        with pytest.raises(StorageUnavailableError) as exc_info:
            await service.auto_assign("inc-1")

        assert service._auto_assign_once.await_count == 1 + test_settings.storage_max_retries
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout_is_storage_unavailable(self, db_session, test_settings):
        test_settings.storage_timeout_seconds = 0.01
        test_settings.storage_max_retries = 0
        service = DispatchService(db_session, test_settings)

        async def slow(incident_id):
            await asyncio.sleep(1)

        service._auto_assign_once = slow

        with pytest.raises(StorageUnavailableError):
            await service.auto_assign("inc-1")

    @pytest.mark.asyncio
    async def test_other_database_errors_are_not_retried(self, db_session, test_settings):
        service = DispatchService(db_session, test_settings)
        service._auto_assign_once = AsyncMock(
            side_effect=ProgrammingError("SELECT", {}, Exception("no such table"))
        )

        with pytest.raises(StorageUnavailableError):
            await service.auto_assign("inc-1")

        assert service._auto_assign_once.await_count == 1


class TestManualAssign:
    """Tests for DispatchService.assign."""

    @pytest.mark.asyncio
    async def test_assigns_chosen_responder(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="near", coordinates=NEAR_POINT)
        await add_responder(id="far", name="Fire 7", type="fire", coordinates=FAR_POINT)

        outcome = await DispatchService(db_session, test_settings).assign("inc-1", "far")

        assert outcome.responder_id == "far"
        assert outcome.responder_name == "Fire 7"
        assert outcome.distance_km > 10.0

        assignment = await _reload(db_session, Assignment, outcome.assignment_id)
        assert assignment.notes.startswith("Manually assigned. Distance: ")
        far = await _reload(db_session, Responder, "far")
        assert far.status == "on_call"

    @pytest.mark.asyncio
    async def test_keeps_dispatcher_notes(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="r1", coordinates=None)

        outcome = await DispatchService(db_session, test_settings).assign(
            "inc-1", "r1", notes="Requested by caller"
        )

        assignment = await _reload(db_session, Assignment, outcome.assignment_id)
        assert assignment.notes == "Requested by caller"
        assert outcome.distance_km is None

    @pytest.mark.asyncio
    async def test_unavailable_responder(
        self, db_session, test_settings, add_incident, add_responder
    ):
        await add_incident(id="inc-1")
        await add_responder(id="r1", status="off_duty")

        with pytest.raises(ResponderUnavailableError):
            await DispatchService(db_session, test_settings).assign("inc-1", "r1")

        incident = await _reload(db_session, Incident, "inc-1")
        assert incident.status == "reported"

    @pytest.mark.asyncio
    async def test_unknown_responder(self, db_session, test_settings, add_incident):
        await add_incident(id="inc-1")

        with pytest.raises(RecordNotFoundError):
            await DispatchService(db_session, test_settings).assign("inc-1", "nobody")
