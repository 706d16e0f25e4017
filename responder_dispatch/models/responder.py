"""Responder model for field units."""

from datetime import datetime
from typing import Literal, get_args

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow

ResponderStatus = Literal["available", "on_call", "on_break", "off_duty", "unavailable"]
RESPONDER_STATUSES: tuple[str, ...] = get_args(ResponderStatus)


class Responder(Base):
    """A field unit (ambulance, police car, ...) that can be dispatched."""

    __tablename__ = "responders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50))

    status: Mapped[str] = mapped_column(String(20), default="available", nullable=False, index=True)

    # Last known position as "(lon,lat)"
    coordinates: Mapped[str | None] = mapped_column(String(64))
    notes: Mapped[str | None] = mapped_column(Text)

    last_status_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Responder {self.name} ({self.status})>"
