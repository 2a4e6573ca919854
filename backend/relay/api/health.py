"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from relay.dependencies import get_database, get_gateway
from relay.gateway.gateway import SessionGateway
from relay.storage.database import Database

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_mongodb(database: Database) -> dict[str, Any]:
    """Ping MongoDB and return status."""
    try:
        if not await database.ping():
            return {"status": "unhealthy", "error": "not connected"}
        return {"status": "healthy"}
    except Exception as exc:
        logger.warning("MongoDB health check failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("")
async def health_check(
    database: Database = Depends(get_database),
    gateway: SessionGateway = Depends(get_gateway),
) -> dict[str, Any]:
    """Return aggregate health of backend services and the live-session count."""
    services = {
        "mongodb": await _check_mongodb(database),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
        "active_sessions": gateway.active_count,
    }
