"""Intake of IoT device alerts."""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.config import Settings, get_settings
from responder_dispatch.database import utcnow
from responder_dispatch.errors import (
    DispatchError,
    InvalidRequestError,
    RecordNotFoundError,
    StorageUnavailableError,
)
from responder_dispatch.geo import format_point
from responder_dispatch.models import DeviceAlert, Incident, IoTDevice
from responder_dispatch.services.dispatch import DispatchOutcome, DispatchService

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = 3
MIN_SEVERITY = 1
MAX_SEVERITY = 5


def priority_for_severity(severity: int) -> int:
    """Map alert severity (1 low .. 5 critical) onto incident priority (1 highest)."""
    return max(1, min(5, 6 - severity))


@dataclass
class AlertIntakeResult:
    alert_id: str
    emergency_id: str
    dispatch: DispatchOutcome | None = None
    dispatch_error: DispatchError | None = None


class AlertIntakeService:
    """
    Records a device alert and opens an incident for it.

    With ``auto_dispatch_on_alert`` set, the new incident goes straight to
    the DispatchService in a second transaction, so a failed dispatch never
    loses the recorded alert.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    async def ingest(
        self,
        device_id: str,
        alert_type: str,
        latitude: float,
        longitude: float,
        severity: int | None = None,
        data: dict[str, Any] | None = None,
    ) -> AlertIntakeResult:
        if severity is None:
            severity = DEFAULT_SEVERITY
        elif not MIN_SEVERITY <= severity <= MAX_SEVERITY:
            raise InvalidRequestError(
                f"Severity must be between {MIN_SEVERITY} and {MAX_SEVERITY}",
                details=f"severity={severity}",
            )

        result = await self.db.execute(select(IoTDevice).where(IoTDevice.device_id == device_id))
        device = result.scalar_one_or_none()
        if device is None:
            raise RecordNotFoundError("Device not found", details=device_id)

        point = format_point(latitude, longitude)
        now = utcnow()

        try:
            alert = DeviceAlert(
                device_id=device.id,
                alert_type=alert_type,
                severity=severity,
                location=point,
                data=data or {},
            )
            self.db.add(alert)
            await self.db.flush()

            incident = Incident(
                type=alert_type,
                description=f"Device alert from {device.name} ({device.device_id})",
                coordinates=point,
                priority=priority_for_severity(severity),
                status="reported",
                device_alert_id=alert.id,
            )
            self.db.add(incident)
            await self.db.flush()

            alert.emergency_id = incident.id
            alert.processed = True
            alert.processed_at = now

            device.location = point
            device.last_heartbeat = now

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageUnavailableError("Failed to create alert", details=str(e)) from e

        logger.info(
            f"Alert {alert.id} from device {device_id} opened emergency {incident.id}"
        )

        intake = AlertIntakeResult(alert_id=alert.id, emergency_id=incident.id)
        if self.settings.auto_dispatch_on_alert:
            try:
                intake.dispatch = await DispatchService(self.db, self.settings).auto_assign(
                    intake.emergency_id
                )
            except DispatchError as e:
                # The alert and incident are committed; the scheduler retries dispatch.
                logger.error(f"Auto dispatch for emergency {intake.emergency_id} failed: {e}")
                intake.dispatch_error = e
        return intake
