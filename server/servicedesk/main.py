"""
Main FastAPI application for the machine service desk.
Serves the REST API used by field engineers, service heads, sales and admins.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from servicedesk import __version__
from servicedesk.config import settings
from servicedesk.errors import ServiceError
from servicedesk.routes import (
    customers,
    health,
    machines,
    notifications,
    points,
    reports,
    service_records,
    spares_quotations,
    users,
)
from servicedesk.services.database import close_db, init_db
from servicedesk.services.notification_service import NotificationDispatcher
from servicedesk.services.push_sender import PushSender
from sqlalchemy.exc import IntegrityError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    await init_db()
    push_sender = PushSender.from_settings(settings)
    app.state.dispatcher = NotificationDispatcher(push_sender)
    logger.info(f"Service desk API started ({settings.APP_ENV})")

    yield
    # Shutdown
    await push_sender.close()
    await close_db()


app = FastAPI(
    title="Machine Service Desk",
    description="After-sales service management for installed machines",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"{request.method} {request.url.path} violated a constraint: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "conflict", "message": "Request conflicts with existing data"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "server_error", "message": "Internal server error"},
    )


# Register routes
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(machines.router, prefix="/api/machines", tags=["machines"])
app.include_router(service_records.router, prefix="/api/service-records", tags=["service-records"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(points.router, prefix="/api/points", tags=["points"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(spares_quotations.router, prefix="/api/spares-quotations", tags=["spares-quotations"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Machine Service Desk",
        "version": __version__,
        "status": "running",
    }
