"""Health and metrics endpoints."""

from fastapi import APIRouter

from taxdesk.config import settings
from taxdesk.schemas.calculation import MAX_SUBTOTAL

SERVICE_NAME = "taxdesk"
SERVICE_VERSION = "0.1.0"

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check; does not touch the tax store."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/metrics")
async def metrics():
    """Service identity and the calculation settings in force."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "calculation": {
            "money_decimal_places": settings.money_decimal_places,
            "rounding": "ROUND_HALF_UP",
            "max_subtotal": float(MAX_SUBTOTAL),
        },
    }
