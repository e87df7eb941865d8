"""
Sales Pulse — Monday.com Router
=================================
Dashboard summary computed from the deals board.

Endpoints:
  GET /api/monday            - Full summary payload
      ?minThreshold=N        - Override the top-deals minimum (bypasses cache)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response

from salespulse.errors import ConfigError, RecordFetchError
from salespulse.logger import setup_logger

logger = setup_logger("monday_router")

router = APIRouter(prefix="/api/monday", tags=["monday"])

CDN_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate"


@router.get("")
async def dashboard_summary(
    request: Request,
    response: Response,
    min_threshold: Optional[float] = Query(
        None, alias="minThreshold", ge=0,
        description="Minimum deal value for top deals and news",
    ),
):
    """Leaderboard, targets, top deals and news for the current month."""
    service = request.app.state.summary_service
    if not service.is_configured:
        raise HTTPException(status_code=503, detail="Monday API token not configured")

    try:
        summary, cache_hit = await service.get_summary(min_threshold)
    except ConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except RecordFetchError as e:
        logger.error("Dashboard summary failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to fetch dashboard data: {e}")

    response.headers["Cache-Control"] = CDN_CACHE_CONTROL
    response.headers["X-Cache"] = "HIT" if cache_hit else "MISS"
    return summary
