"""API routers."""

from responder_dispatch.routers.functions import router as functions_router
from responder_dispatch.routers.health import router as health_router
from responder_dispatch.routers.incidents import router as incidents_router
from responder_dispatch.routers.records import (
    devices_router,
    escalations_router,
    hospitals_router,
)
from responder_dispatch.routers.responders import router as responders_router

__all__ = [
    "devices_router",
    "escalations_router",
    "functions_router",
    "health_router",
    "hospitals_router",
    "incidents_router",
    "responders_router",
]
