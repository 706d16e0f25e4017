"""Hospital model for bed capacity tracking."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from responder_dispatch.database import Base, new_id, utcnow


class Hospital(Base):
    """Receiving facility with a bed counter."""

    __tablename__ = "hospitals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    coordinates: Mapped[str | None] = mapped_column(String(64))

    total_beds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_beds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    specialist_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "available_beds >= 0 AND available_beds <= total_beds",
            name="ck_hospitals_bed_counts",
        ),
    )

    def __repr__(self) -> str:
        return f"<Hospital {self.name}: {self.available_beds}/{self.total_beds}>"
