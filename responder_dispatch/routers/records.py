"""API routes for escalations, hospitals and IoT devices."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.database import get_db, utcnow
from responder_dispatch.errors import ConflictError, RecordNotFoundError
from responder_dispatch.geo import format_point
from responder_dispatch.models import DeviceAlert, Escalation, Hospital, IoTDevice
from responder_dispatch.schemas.records import (
    DeviceAlertOut,
    DeviceCreate,
    DeviceOut,
    EscalationOut,
    EscalationResolve,
    HospitalBedsUpdate,
    HospitalCreate,
    HospitalOut,
)

logger = logging.getLogger(__name__)

escalations_router = APIRouter(prefix="/escalations", tags=["escalations"])
hospitals_router = APIRouter(prefix="/hospitals", tags=["hospitals"])
devices_router = APIRouter(prefix="/devices", tags=["devices"])


# Escalations


@escalations_router.get("", response_model=list[EscalationOut])
async def list_escalations(
    db: Annotated[AsyncSession, Depends(get_db)],
    unresolved: bool = Query(False, description="Only open escalations"),
    limit: int = Query(100, ge=1, le=500),
) -> list[Escalation]:
    """List escalations, newest first."""
    query = select(Escalation).order_by(Escalation.created_at.desc(), Escalation.id)
    if unresolved:
        query = query.where(Escalation.resolved.is_(False))
    result = await db.execute(query.limit(limit))
    return list(result.scalars().all())


@escalations_router.post("/{escalation_id}/resolve", response_model=EscalationOut)
async def resolve_escalation(
    escalation_id: str,
    payload: EscalationResolve,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Escalation:
    """Mark an escalation handled."""
    escalation = await db.get(Escalation, escalation_id)
    if escalation is None:
        raise RecordNotFoundError("Escalation not found", details=escalation_id)
    if escalation.resolved:
        raise ConflictError("Escalation already resolved", details=escalation_id)

    escalation.resolved = True
    escalation.resolved_at = utcnow()
    escalation.handled_by = payload.handled_by
    await db.commit()

    logger.info(f"Escalation {escalation_id} resolved by {payload.handled_by}")
    return escalation


# Hospitals


@hospitals_router.post("", response_model=HospitalOut, status_code=201)
async def register_hospital(
    payload: HospitalCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Hospital:
    hospital = Hospital(
        name=payload.name,
        location=payload.location,
        coordinates=(
            format_point(payload.coordinates.latitude, payload.coordinates.longitude)
            if payload.coordinates
            else None
        ),
        total_beds=payload.total_beds,
        available_beds=payload.available_beds,
        specialist_available=payload.specialist_available,
        notes=payload.notes,
    )
    db.add(hospital)
    await db.commit()
    return hospital


@hospitals_router.get("", response_model=list[HospitalOut])
async def list_hospitals(
    db: Annotated[AsyncSession, Depends(get_db)],
    with_beds: bool = Query(False, description="Only hospitals with a free bed"),
) -> list[Hospital]:
    query = select(Hospital).order_by(Hospital.name, Hospital.id)
    if with_beds:
        query = query.where(Hospital.available_beds > 0)
    result = await db.execute(query)
    return list(result.scalars().all())


@hospitals_router.get("/{hospital_id}", response_model=HospitalOut)
async def get_hospital(
    hospital_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Hospital:
    hospital = await db.get(Hospital, hospital_id)
    if hospital is None:
        raise RecordNotFoundError("Hospital not found", details=hospital_id)
    return hospital


@hospitals_router.patch("/{hospital_id}/beds", response_model=HospitalOut)
async def update_beds(
    hospital_id: str,
    payload: HospitalBedsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Hospital:
    """Update bed counters; available beds must stay within 0..total."""
    hospital = await db.get(Hospital, hospital_id)
    if hospital is None:
        raise RecordNotFoundError("Hospital not found", details=hospital_id)

    total = payload.total_beds if payload.total_beds is not None else hospital.total_beds
    available = (
        payload.available_beds if payload.available_beds is not None else hospital.available_beds
    )
    if available > total:
        raise HTTPException(
            status_code=422,
            detail=f"available_beds ({available}) cannot exceed total_beds ({total})",
        )

    hospital.total_beds = total
    hospital.available_beds = available
    if payload.specialist_available is not None:
        hospital.specialist_available = payload.specialist_available
    await db.commit()

    logger.info(f"Hospital {hospital_id} beds: {available}/{total}")
    return hospital


# Devices


@devices_router.post("", response_model=DeviceOut, status_code=201)
async def register_device(
    payload: DeviceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IoTDevice:
    existing = await db.execute(select(IoTDevice).where(IoTDevice.device_id == payload.device_id))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Device already registered", details=payload.device_id)

    device = IoTDevice(
        device_id=payload.device_id,
        name=payload.name,
        type=payload.type,
        location=(
            format_point(payload.coordinates.latitude, payload.coordinates.longitude)
            if payload.coordinates
            else None
        ),
    )
    db.add(device)
    await db.commit()
    return device


@devices_router.get("", response_model=list[DeviceOut])
async def list_devices(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[IoTDevice]:
    result = await db.execute(select(IoTDevice).order_by(IoTDevice.device_id))
    return list(result.scalars().all())


@devices_router.get("/{device_id}/alerts", response_model=list[DeviceAlertOut])
async def list_device_alerts(
    device_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(50, ge=1, le=200),
) -> list[DeviceAlert]:
    """Alerts raised by a device (external device id), newest first."""
    result = await db.execute(select(IoTDevice).where(IoTDevice.device_id == device_id))
    device = result.scalar_one_or_none()
    if device is None:
        raise RecordNotFoundError("Device not found", details=device_id)

    alerts = await db.execute(
        select(DeviceAlert)
        .where(DeviceAlert.device_id == device.id)
        .order_by(DeviceAlert.created_at.desc())
        .limit(limit)
    )
    return list(alerts.scalars().all())
