"""Initial schema for responder dispatch.

Revision ID: e7a21c4b9f30
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "e7a21c4b9f30"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "emergencies",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("coordinates", sa.String(length=64), nullable=True),
        sa.Column("priority", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="reported", nullable=False),
        sa.Column("device_alert_id", sa.String(length=36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at("reported_at"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _created_at("updated_at"),
        if_not_exists=True,
    )

    op.create_table(
        "responders",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="available", nullable=False),
        sa.Column("coordinates", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_status_change", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        if_not_exists=True,
    )

    op.create_table(
        "iot_devices",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("device_id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="online", nullable=False),
        sa.Column("location", sa.String(length=64), nullable=True),
        sa.Column("last_heartbeat", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("device_id"),
        if_not_exists=True,
    )

    op.create_table(
        "device_alerts",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "device_id", sa.String(length=36), sa.ForeignKey("iot_devices.id"), nullable=False
        ),
        sa.Column("alert_type", sa.String(length=50), nullable=False),
        sa.Column("severity", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column("location", sa.String(length=64), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("processed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "emergency_id", sa.String(length=36), sa.ForeignKey("emergencies.id"), nullable=True
        ),
        _created_at(),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        if_not_exists=True,
    )

    op.create_table(
        "emergency_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "emergency_id", sa.String(length=36), sa.ForeignKey("emergencies.id"), nullable=False
        ),
        sa.Column(
            "responder_id", sa.String(length=36), sa.ForeignKey("responders.id"), nullable=False
        ),
        sa.Column("status", sa.String(length=20), server_default="assigned", nullable=False),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at("assigned_at"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        if_not_exists=True,
    )

    op.create_table(
        "alert_escalations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "emergency_id", sa.String(length=36), sa.ForeignKey("emergencies.id"), nullable=True
        ),
        sa.Column(
            "alert_id", sa.String(length=36), sa.ForeignKey("device_alerts.id"), nullable=True
        ),
        sa.Column("level", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("resolved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("handled_by", sa.String(length=255), nullable=True),
        _created_at(),
        if_not_exists=True,
    )

    op.create_table(
        "hospitals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("coordinates", sa.String(length=64), nullable=True),
        sa.Column("total_beds", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("available_beds", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "specialist_available", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at("updated_at"),
        sa.CheckConstraint(
            "available_beds >= 0 AND available_beds <= total_beds",
            name="ck_hospitals_bed_counts",
        ),
        if_not_exists=True,
    )

    # Indexes
    op.create_index("ix_emergencies_status", "emergencies", ["status"], if_not_exists=True)
    op.create_index(
        "idx_emergencies_cursor",
        "emergencies",
        [sa.text("reported_at DESC"), sa.text("id DESC")],
        if_not_exists=True,
    )
    op.create_index("ix_responders_status", "responders", ["status"], if_not_exists=True)
    op.create_index(
        "ix_device_alerts_device_id", "device_alerts", ["device_id"], if_not_exists=True
    )
    op.create_index(
        "ix_emergency_assignments_emergency_id",
        "emergency_assignments",
        ["emergency_id"],
        if_not_exists=True,
    )
    op.create_index(
        "ix_emergency_assignments_responder_id",
        "emergency_assignments",
        ["responder_id"],
        if_not_exists=True,
    )
    # At most one active assignment per emergency
    op.create_index(
        "uq_assignments_active_emergency",
        "emergency_assignments",
        ["emergency_id"],
        unique=True,
        postgresql_where=sa.text("status NOT IN ('completed', 'canceled')"),
        if_not_exists=True,
    )
    op.create_index(
        "ix_alert_escalations_emergency_id",
        "alert_escalations",
        ["emergency_id"],
        if_not_exists=True,
    )
    op.create_index(
        "ix_alert_escalations_resolved", "alert_escalations", ["resolved"], if_not_exists=True
    )


def downgrade() -> None:
    op.drop_index("ix_alert_escalations_resolved", table_name="alert_escalations", if_exists=True)
    op.drop_index(
        "ix_alert_escalations_emergency_id", table_name="alert_escalations", if_exists=True
    )
    op.drop_index(
        "uq_assignments_active_emergency", table_name="emergency_assignments", if_exists=True
    )
    op.drop_index(
        "ix_emergency_assignments_responder_id",
        table_name="emergency_assignments",
        if_exists=True,
    )
    op.drop_index(
        "ix_emergency_assignments_emergency_id",
        table_name="emergency_assignments",
        if_exists=True,
    )
    op.drop_index("ix_device_alerts_device_id", table_name="device_alerts", if_exists=True)
    op.drop_index("ix_responders_status", table_name="responders", if_exists=True)
    op.drop_index("idx_emergencies_cursor", table_name="emergencies", if_exists=True)
    op.drop_index("ix_emergencies_status", table_name="emergencies", if_exists=True)

    op.drop_table("hospitals", if_exists=True)
    op.drop_table("alert_escalations", if_exists=True)
    op.drop_table("emergency_assignments", if_exists=True)
    op.drop_table("device_alerts", if_exists=True)
    op.drop_table("iot_devices", if_exists=True)
    op.drop_table("responders", if_exists=True)
    op.drop_table("emergencies", if_exists=True)
