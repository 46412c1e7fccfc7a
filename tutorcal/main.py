# tutorcal/main.py
"""
FastAPI application for the TutorCal scheduling backend.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .routes import (
    availability,
    bookings,
    health,
    metrics,
    student_lessons,
    student_slots,
    teacher_lessons,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="TutorCal API",
        description="Availability and lesson booking for tutors and their students",
        version=__version__,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(availability.router)
    app.include_router(student_slots.router)
    app.include_router(bookings.router)
    app.include_router(teacher_lessons.router)
    app.include_router(student_lessons.router)

    logger.info("TutorCal API configured (environment=%s)", settings.environment)
    return app


app = create_app()
