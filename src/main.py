# pyright: reportMissingTypeStubs=false
"""
Appointment Scheduling API

A FastAPI application exposing the appointment scheduling core.

Features:
- Staff scheduling: appointments, status changes, availability
- Public online booking with email-based identity checks
- SQLAlchemy ORM persistence (SQLite or PostgreSQL)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import appointments, availability, booking
from api.errors import register_exception_handlers
from core.config import CORS_ORIGINS, LOG_LEVEL
from core.database import create_tables
from services.appointment_events import AppointmentEventPublisher

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Appointment Scheduling API")
    create_tables()
    yield
    logger.info("Shutting down Appointment Scheduling API")


def create_app(publisher: AppointmentEventPublisher | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        publisher: Event publisher shared by all requests (a new one by default)
    """
    app = FastAPI(
        title="Appointment Scheduling API",
        description="Availability, booking rules and appointment lifecycle for service organizations",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.event_publisher = publisher or AppointmentEventPublisher()

    # CORS middleware for frontend integration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(
        appointments.router,
        prefix="/api/organizations",
        tags=["appointments"],
        responses={
            400: {"description": "Bad request"},
            404: {"description": "Resource not found"},
            409: {"description": "Conflict"},
            422: {"description": "Deadline passed"},
            500: {"description": "Internal server error"},
        },
    )
    app.include_router(
        availability.router,
        prefix="/api/organizations",
        tags=["availability"],
        responses={
            400: {"description": "Bad request"},
            404: {"description": "Resource not found"},
            500: {"description": "Internal server error"},
        },
    )
    app.include_router(
        booking.router,
        prefix="/api/public",
        tags=["public-booking"],
        responses={
            400: {"description": "Bad request"},
            403: {"description": "Forbidden"},
            404: {"description": "Resource not found"},
            409: {"description": "Conflict"},
            422: {"description": "Deadline passed"},
            500: {"description": "Internal server error"},
        },
    )

    @app.get("/health", summary="Health check", description="Returns the health status of the API")
    async def health_check() -> dict[str, str]:
        """Check if the API is healthy and responding."""
        return {"status": "healthy"}

    return app


app = create_app()
