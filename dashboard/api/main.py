"""
Sales Pulse — API Server
==========================

Serves the sales dashboard widget: leaderboard, goal tracking, top deals
and the news feed, computed live from the Monday.com deals board.

Route groups:
  /api/health          - Health check
  /api/monday          - Dashboard summary (cached, ?minThreshold= override)
  /api/settings        - Dashboard settings (GET / POST)
  /api/generate-news   - AI-written news copy for a list of deals
  /api/debug/users     - Directory / owner photo diagnostics
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from dashboard.api.middleware import PreflightMiddleware
from dashboard.api.routers.debug import router as debug_router
from dashboard.api.routers.monday import router as monday_router
from dashboard.api.routers.news import router as news_router
from dashboard.api.routers.settings import router as settings_router
from salespulse.ai_provider import default_provider, provider_configured
from salespulse.cache import SummaryCache
from salespulse.settings_store import SettingsStore, build_backend
from salespulse.summary_service import SummaryService

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Build the per-process caches and service."""
    logger.info("Starting Sales Pulse...")

    app.state.settings_store = SettingsStore(
        backend=build_backend(),
        ttl_seconds=float(os.getenv("SETTINGS_CACHE_TTL", "60")),
    )
    app.state.summary_cache = SummaryCache(
        ttl_seconds=float(os.getenv("SUMMARY_CACHE_TTL", "300")),
    )
    app.state.summary_service = SummaryService(
        settings_store=app.state.settings_store,
        cache=app.state.summary_cache,
    )

    if not app.state.summary_service.is_configured:
        logger.warning("MONDAY_API_TOKEN not set — /api/monday will return 503")

    logger.info("Sales Pulse ready")
    yield
    logger.info("Shutting down Sales Pulse...")


# ─── App Setup ────────────────────────────────────────────────

app = FastAPI(
    title="Sales Pulse",
    version=VERSION,
    description="Sales team leaderboard and goal tracking from Monday.com",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(PreflightMiddleware)


# ─── Include Routers ──────────────────────────────────────────

app.include_router(monday_router)
app.include_router(settings_router)
app.include_router(news_router)
app.include_router(debug_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health(request: Request):
    """Health check with integration status."""
    store = request.app.state.settings_store
    cache = request.app.state.summary_cache
    return {
        "status": "healthy",
        "service": "Sales Pulse",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "monday": request.app.state.summary_service.is_configured,
            "settings_backend": store.backend.name if store.backend else None,
            "news_ai": provider_configured(),
            "news_provider": default_provider(),
        },
        "summary_cache_age": cache.age,
    }
