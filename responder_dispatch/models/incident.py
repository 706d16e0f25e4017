"""Incident model for reported emergencies."""

from datetime import datetime
from typing import Literal, get_args

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow

IncidentStatus = Literal["reported", "assigned", "en_route", "on_scene", "resolved", "canceled"]
INCIDENT_STATUSES: tuple[str, ...] = get_args(IncidentStatus)
TERMINAL_INCIDENT_STATUSES = frozenset({"resolved", "canceled"})


class Incident(Base):
    """
    An emergency report requiring a response.

    Rows are never deleted; ``status`` moves forward through the lifecycle
    in ``services.lifecycle``. Only the dispatch service performs
    ``reported -> assigned``.
    """

    __tablename__ = "emergencies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # Human-readable address and "(lon,lat)" point text
    location: Mapped[str | None] = mapped_column(String(255))
    coordinates: Mapped[str | None] = mapped_column(String(64))

    priority: Mapped[int] = mapped_column(Integer, default=3, nullable=False)  # 1 = highest
    status: Mapped[str] = mapped_column(String(20), default="reported", nullable=False, index=True)

    device_alert_id: Mapped[str | None] = mapped_column(String(36))
    notes: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    reported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        # Cursor pagination index
        Index("idx_emergencies_cursor", reported_at.desc(), id.desc()),
    )

    def __repr__(self) -> str:
        return f"<Incident {self.id}: {self.type} ({self.status})>"
