"""IoT device and device alert models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow


class IoTDevice(Base):
    """A registered sensor or vehicle unit that can raise alerts."""

    __tablename__ = "iot_devices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    device_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="online", nullable=False)

    location: Mapped[str | None] = mapped_column(String(64))
    last_heartbeat: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<IoTDevice {self.device_id}>"


class DeviceAlert(Base):
    """
    Alert raised by a device.

    ``device_id`` here is the device's primary key, not its external id.
    """

    __tablename__ = "device_alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    device_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("iot_devices.id"), nullable=False, index=True
    )
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[int] = mapped_column(Integer, default=3, nullable=False)  # 1..5
    location: Mapped[str | None] = mapped_column(String(64))
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    emergency_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("emergencies.id"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<DeviceAlert {self.alert_type} severity={self.severity}>"
