"""Marketplace booking API.

Routes:
- GET  /api/ping
- POST /api/bookings and /api/bookings/{id}/{accept,decline,checkout,complete,cancel}
- POST /api/webhooks/{mercadopago,mobbex}

Runs behind API Gateway through Mangum (``handler``) or locally with uvicorn.
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from marketplace_api.exceptions import register_exception_handlers
from marketplace_api.middleware.correlation import CorrelationIdMiddleware
from marketplace_api.routes.bookings import router as bookings_router
from marketplace_api.routes.webhooks import router as webhooks_router
from marketplace_core.utils.logging import configure_logging, get_logger

SERVICE_NAME = "marketplace-api"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"

configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
logger = get_logger(__name__)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(
    title="Marketplace Booking API",
    description="Booking lifecycle, cancellation penalties and payment webhooks",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

app.include_router(bookings_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
        "environment": os.getenv("ENVIRONMENT", "dev"),
    }


handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080) -> None:
    """Serve the API locally with uvicorn."""
    import uvicorn

    logger.info("Starting %s on %s:%d", SERVICE_NAME, host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
