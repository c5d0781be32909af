# sync_reservations/main.py

import structlog
from fastapi import FastAPI

from sync_reservations.logging_config import setup_logging
from sync_reservations.middleware import RequestIDMiddleware
from sync_reservations.routes.health import router as health_router
from sync_reservations.routes.metrics import router as metrics_router
from sync_reservations.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Reservation Sync API",
    description="Reconciles scraped OTA and walk-in reservations per hotel",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)

app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(reservations_router, tags=["Reservations"])
