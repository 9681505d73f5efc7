"""FastAPI entrypoint for the Apex Truck Parking booking backend.

- `apex_parking/routes/` for checkout API and webhook endpoints
- `apex_parking/services/` for booking, payment and messaging logic
- `apex_parking/db/` for SQLAlchemy models and session management
- `apex_parking/scheduler/` for APScheduler reminder jobs
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from apex_parking.core.config import get_settings
from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.exceptions import (
    database_exception_handler,
    domain_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from apex_parking.core.middleware import RequestContextMiddleware
from apex_parking.db.init_db import init_db
from apex_parking.scheduler.reminder_scheduler import start_scheduler
from apex_parking.routes import email_webhook, reminders, reservations, sms_webhook, stripe_webhook

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize app resources before serving traffic."""
    init_db()
    logger.info("Database tables initialized.")

    scheduler = None
    if get_settings().enable_scheduler:
        try:
            scheduler = start_scheduler()
        except Exception:
            logger.exception("Failed to start scheduler.")

    yield

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Reminder scheduler shut down.")

app = FastAPI(
    title="Apex Truck Parking API",
    version="0.1.0",
    description="Daily truck parking reservations, partner booking ingestion and SMS reminders.",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)

app.include_router(reservations.router)
app.include_router(stripe_webhook.router)
app.include_router(sms_webhook.router)
app.include_router(email_webhook.router)
app.include_router(reminders.router)

@app.get("/", tags=["health"])
def root() -> dict[str, str]:
    """Simple status endpoint for uptime checks."""
    return {"status": "Apex Truck Parking Running"}
