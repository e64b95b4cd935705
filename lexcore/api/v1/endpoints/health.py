"""
Health Check Endpoints
"""

import time
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from lexcore import __version__
from lexcore.core.database import check_database_health

logger = structlog.get_logger()
router = APIRouter()


@router.get("/")
async def health_check() -> Any:
    """Liveness plus store of record connectivity"""
    db_healthy = await check_database_health()
    body = {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": "lexcore",
        "version": __version__,
        "timestamp": time.time(),
        "database": "connected" if db_healthy else "unavailable",
    }
    if not db_healthy:
        logger.error("Health check failed", database="unavailable")
        return JSONResponse(status_code=503, content=body)
    return body
