"""
Sales Pulse — Debug Router
============================
Diagnostics for owner photo resolution.

Endpoints:
  GET /api/debug/users  - Directory size, users without photos, and how a
                          sample of deal owners resolve to directory users
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from salespulse.errors import ConfigError, RecordFetchError
from salespulse.logger import setup_logger

logger = setup_logger("debug_router")

router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get("/users")
async def debug_users(
    request: Request,
    sample: int = Query(20, ge=1, le=100, description="Deal owners to sample"),
):
    service = request.app.state.summary_service
    try:
        return await service.directory_diagnostics(sample_size=sample)
    except ConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except RecordFetchError as e:
        logger.error("Directory diagnostics failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch debug data")
