"""Function-style endpoints: auto-assign a responder and ingest device alerts."""

import logging
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from responder_dispatch.config import get_settings
from responder_dispatch.database import get_db
from responder_dispatch.errors import InvalidRequestError
from responder_dispatch.rate_limit import function_rate_limit, limiter
from responder_dispatch.schemas.dispatch import (
    AutoAssignRequest,
    DispatchResponse,
    IoTAlertRequest,
    IoTAlertResponse,
)
from responder_dispatch.services.alerts import AlertIntakeService
from responder_dispatch.services.dispatch import Assigned, DispatchOutcome, DispatchService

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
settings = get_settings()

router = APIRouter(tags=["functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(settings.cors_allow_headers),
}


async def _read_body(request: Request, model: type[M]) -> M:
    """Parse a JSON body, reporting any problem as a 400 rather than a 422."""
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequestError("Request body must be valid JSON") from e
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError("Invalid request body", details=str(e)) from e


def outcome_response(outcome: DispatchOutcome) -> DispatchResponse:
    """Render a dispatch outcome in the function response shape."""
    if isinstance(outcome, Assigned):
        return DispatchResponse(
            success=True,
            message="Responder automatically assigned",
            assignment_id=outcome.assignment_id,
            responder_id=outcome.responder_id,
            responder_name=outcome.responder_name,
            distance=outcome.distance_km,
        )

    return DispatchResponse(
        success=False,
        message=f"{outcome.reason}. Alert escalated.",
        escalation_id=outcome.escalation_id,
        level=outcome.level,
    )


@router.options("/auto-assign-responder", include_in_schema=False)
@router.options("/iot-alert", include_in_schema=False)
async def preflight() -> Response:
    """Short-circuit CORS preflight."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/auto-assign-responder", response_model=DispatchResponse)
@limiter.limit(function_rate_limit)
async def auto_assign_responder(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DispatchResponse:
    """
    Assign the nearest available responder to an emergency.

    Body: ``{"emergency_id": "..."}``. Escalation (nobody to send) is
    returned as HTTP 200 with ``success=false`` and an ``escalation_id``.
    """
    payload = await _read_body(request, AutoAssignRequest)
    if not payload.emergency_id:
        raise InvalidRequestError("Emergency ID is required")

    outcome = await DispatchService(db).auto_assign(payload.emergency_id)
    return outcome_response(outcome)


@router.post("/iot-alert", response_model=IoTAlertResponse)
@limiter.limit(function_rate_limit)
async def iot_alert(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IoTAlertResponse:
    """
    Record an alert from a registered device and open an emergency for it.

    When auto dispatch is enabled the response includes the dispatch outcome.
    """
    payload = await _read_body(request, IoTAlertRequest)
    if (
        not payload.device_id
        or not payload.alert_type
        or payload.latitude is None
        or payload.longitude is None
    ):
        raise InvalidRequestError(
            "Missing required fields: device_id, alert_type, latitude, longitude"
        )
    if not (-90 <= payload.latitude <= 90 and -180 <= payload.longitude <= 180):
        raise InvalidRequestError("Latitude or longitude out of range")

    intake = await AlertIntakeService(db).ingest(
        device_id=payload.device_id,
        alert_type=payload.alert_type,
        latitude=payload.latitude,
        longitude=payload.longitude,
        severity=payload.severity,
        data=payload.data,
    )

    return IoTAlertResponse(
        success=True,
        message="Alert received and processed",
        alert_id=intake.alert_id,
        emergency_id=intake.emergency_id,
        dispatch=outcome_response(intake.dispatch) if intake.dispatch else None,
    )
