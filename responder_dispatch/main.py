"""FastAPI application for the responder dispatch backend."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from responder_dispatch.config import get_settings
from responder_dispatch.database import check_db_ready
from responder_dispatch.errors import DispatchError
from responder_dispatch.rate_limit import limiter
from responder_dispatch.routers import (
    devices_router,
    escalations_router,
    functions_router,
    health_router,
    hospitals_router,
    incidents_router,
    responders_router,
)
from responder_dispatch.tasks.scheduler import setup_scheduler, shutdown_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting responder dispatch backend...")

    try:
        await check_db_ready()
        logger.info("Database ready")
    except Exception as e:
        logger.error(f"Database not ready: {e}")
        raise

    setup_scheduler()

    yield

    shutdown_scheduler()
    logger.info("Responder dispatch backend shut down")


app = FastAPI(
    title="Responder Dispatch API",
    description="Incident reporting, nearest-responder dispatch and escalation",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=settings.cors_allow_headers,
)


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    """Render expected service failures as {error, details}."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_kind} on {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(health_router)
app.include_router(functions_router, prefix=settings.functions_prefix)
app.include_router(incidents_router, prefix=settings.api_v1_prefix)
app.include_router(responders_router, prefix=settings.api_v1_prefix)
app.include_router(escalations_router, prefix=settings.api_v1_prefix)
app.include_router(hospitals_router, prefix=settings.api_v1_prefix)
app.include_router(devices_router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Responder Dispatch API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "responder_dispatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
