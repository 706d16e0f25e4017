"""Tests for the background re-dispatch job."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from responder_dispatch.models import Incident
from responder_dispatch.tasks import scheduler as scheduler_module
from responder_dispatch.tasks.scheduler import (
    redispatch_pending,
    setup_scheduler,
    shutdown_scheduler,
)


async def _status(db_session, incident_id) -> str:
    result = await db_session.execute(
        select(Incident.status).where(Incident.id == incident_id)
    )
    return result.scalar_one()


class TestRedispatchPending:
    """Tests for redispatch_pending()."""

    @pytest.mark.asyncio
    async def test_assigns_waiting_incidents(self, db_session, add_incident, add_responder):
        await add_incident(id="inc-1")
        await add_incident(id="inc-2")
        await add_responder(id="r1")
        await add_responder(id="r2", coordinates="(39.30,-6.20)")

        assigned = await redispatch_pending(db_session, batch_size=10)

        assert assigned == 2
        assert await _status(db_session, "inc-1") == "assigned"
        assert await _status(db_session, "inc-2") == "assigned"

    @pytest.mark.asyncio
    async def test_highest_priority_first(
        self, db_session, add_incident, add_responder, sample_datetime
    ):
        await add_incident(id="routine", priority=4, reported_at=sample_datetime)
        await add_incident(
            id="urgent", priority=1, reported_at=sample_datetime + timedelta(minutes=5)
        )
        await add_responder(id="r1")

        assigned = await redispatch_pending(db_session, batch_size=1)

        assert assigned == 1
        assert await _status(db_session, "urgent") == "assigned"
        assert await _status(db_session, "routine") == "reported"

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(
        self, db_session, add_incident, add_responder, sample_datetime
    ):
        await add_incident(id="garbled", coordinates="not a point", reported_at=sample_datetime)
        await add_incident(id="good", reported_at=sample_datetime + timedelta(minutes=1))
        await add_responder(id="r1")

        assigned = await redispatch_pending(db_session, batch_size=10)

        assert assigned == 1
        assert await _status(db_session, "garbled") == "reported"
        assert await _status(db_session, "good") == "assigned"

    @pytest.mark.asyncio
    async def test_skips_incidents_without_coordinates(self, db_session, add_incident):
        await add_incident(id="nowhere", coordinates=None)

        assert await redispatch_pending(db_session, batch_size=10) == 0

    @pytest.mark.asyncio
    async def test_escalations_are_not_counted(self, db_session, add_incident):
        await add_incident(id="inc-1")

        assert await redispatch_pending(db_session, batch_size=10) == 0
        assert await _status(db_session, "inc-1") == "reported"


class TestSchedulerSetup:
    def test_disabled(self, monkeypatch):
        monkeypatch.setattr(scheduler_module.settings, "redispatch_enabled", False)

        assert setup_scheduler() is None

    @pytest.mark.asyncio
    async def test_registers_redispatch_job(self, monkeypatch):
        monkeypatch.setattr(scheduler_module.settings, "redispatch_enabled", True)

        scheduler = setup_scheduler()
        try:
            job = scheduler.get_job("redispatch_pending")
            assert job is not None
            assert job.next_run_time > datetime.now(UTC)
        finally:
            shutdown_scheduler()

        assert scheduler_module.scheduler is None
