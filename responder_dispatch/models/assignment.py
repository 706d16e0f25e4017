"""Assignment model linking an incident to a responder."""

from datetime import datetime
from typing import Literal

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow

AssignmentStatus = Literal["assigned", "accepted", "en_route", "on_scene", "completed", "canceled"]
CLOSED_ASSIGNMENT_STATUSES = frozenset({"completed", "canceled"})

_ACTIVE_CLAUSE = text("status NOT IN ('completed', 'canceled')")


class Assignment(Base):
    """
    One responder dispatched to one incident.

    An incident holds at most one active (not completed/canceled) assignment;
    the partial unique index makes a second concurrent insert fail.
    """

    __tablename__ = "emergency_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    emergency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("emergencies.id"), nullable=False, index=True
    )
    responder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("responders.id"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(String(20), default="assigned", nullable=False)
    distance_km: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index(
            "uq_assignments_active_emergency",
            "emergency_id",
            unique=True,
            postgresql_where=_ACTIVE_CLAUSE,
            sqlite_where=_ACTIVE_CLAUSE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Assignment {self.emergency_id} -> {self.responder_id} ({self.status})>"
