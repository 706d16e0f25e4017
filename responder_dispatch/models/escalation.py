"""Escalation model raised when automatic assignment cannot proceed."""

from datetime import datetime
from typing import Literal, get_args

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow

EscalationLevel = Literal["normal", "elevated", "critical", "emergency"]
ESCALATION_LEVELS: tuple[str, ...] = get_args(EscalationLevel)


class Escalation(Base):
    """Signal for a human dispatcher, with a severity level."""

    __tablename__ = "alert_escalations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    emergency_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("emergencies.id"), index=True
    )
    alert_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("device_alerts.id"))

    level: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    handled_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Escalation {self.level}: {self.reason}>"
