"""
Sales Pulse — News Router
===========================
AI-written news copy for the widget's feed.

Endpoints:
  POST /api/generate-news  - {deals, teamStats?} -> {news: [...]}

Always answers 200; an empty list means "keep the deterministic copy".
"""
from __future__ import annotations

from fastapi import APIRouter, Response

from models.dashboard_models import NewsRequest
from salespulse.logger import setup_logger
from salespulse.news_writer import generate_news_articles

logger = setup_logger("news_router")

router = APIRouter(prefix="/api/generate-news", tags=["news"])


@router.post("")
async def generate_news(body: NewsRequest, response: Response):
    """Rewrite deal facts as news articles, one per deal plus an optional team item."""
    try:
        news = await generate_news_articles(body.deals, body.team_stats)
    except Exception as e:
        logger.error("Error generating news: %s", e)
        return {"news": [], "error": str(e)}

    response.headers["Cache-Control"] = "s-maxage=600, stale-while-revalidate"
    return {"news": news}
