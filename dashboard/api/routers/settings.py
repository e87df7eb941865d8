"""
Sales Pulse — Settings Router
===============================
Shared dashboard settings (goals, top-deal threshold, colors, excluded reps).

Endpoints:
  GET  /api/settings   - Current settings + _source provenance marker
  POST /api/settings   - Merge partial settings over defaults and persist
"""
from __future__ import annotations

from fastapi import APIRouter, Request

from models.dashboard_models import SettingsUpdate
from salespulse.logger import setup_logger

logger = setup_logger("settings_router")

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def read_settings(request: Request):
    """Never fails: falls back to defaults when the backend is unavailable."""
    settings, source = request.app.state.settings_store.get()
    return {**settings.to_public(), "_source": source}


@router.post("")
async def save_settings(request: Request, body: SettingsUpdate):
    """Save settings. Unknown and internal (_-prefixed) fields are dropped."""
    partial = body.model_dump(by_alias=True, exclude_none=True)
    settings, persisted = request.app.state.settings_store.set(partial)

    # Thresholds and exclusions feed the summary
    request.app.state.summary_cache.clear()

    if not persisted:
        logger.warning("Settings saved in memory only")
    return {"success": True, "persisted": persisted, "settings": settings.to_public()}
