"""
Sales Pulse — News Writer
===========================

Rewrites the deterministic news feed with LLM-generated copy.

Purely cosmetic: every failure path (no API key, HTTP error, timeout,
reply without a JSON array) hands back the deterministic entries as-is.

Usage:
    from salespulse.news_writer import enrich_news
    news, enriched = await enrich_news(summary["news"])
"""
from __future__ import annotations

import asyncio
import copy
import json
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from models.dashboard_models import DealFact, TeamStats
from salespulse.ai_provider import ai_complete, default_provider, provider_configured
from salespulse.aggregation import BIG_DEAL_VALUE, TEAM_COLOR, initials
from salespulse.errors import EnrichmentError
from salespulse.logger import setup_logger

logger = setup_logger("news_writer")

ENRICHMENT_TIMEOUT = float(os.getenv("NEWS_ENRICHMENT_TIMEOUT", "8"))

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

NEWS_PROMPT = """You're the witty office comedian writing the sales team's internal news feed. Make it ACTUALLY funny - the kind of stuff that makes people chuckle at their desk. Think "The Office" meets sports commentary.

VIBE CHECK - Be:
- Genuinely funny, not corporate-cringe funny
- Relatable to anyone who's worked in sales/office life
- Playfully roasting (with love) - tease the rep like a friend would
- Office-appropriate but not boring

STYLE IDEAS:
- Mock dramatic sports commentary
- Fake breaking news alerts for mundane wins
- Overly specific observations
- Fake movie titles for deals

RULES:
- Headlines: Under 50 chars, punchy and quotable
- Body: Under 80 chars, the funny punchline or detail
- First names only
- Varied emojis that match the energy
- NO generic phrases like "crushing it" or "killing the game"
- Make each one feel different - vary the humor style

Recent Deals:
{deals}
{team}

JSON format:
[
  {{
    "dealIndex": 0,
    "emoji": "emoji",
    "headline": "Punchy headline",
    "body": "Funny body text"
  }}
]

Generate one article per deal (plus team stats if provided). Make them actually laugh."""


@dataclass
class NewsCopy:
    """Generated copy for one fact. deal_index None means the team article."""
    deal_index: Optional[int]
    emoji: Optional[str]
    headline: str
    body: str


def build_news_prompt(facts: Sequence[DealFact], team_stats: Optional[TeamStats] = None) -> str:
    deals_text = "\n".join(
        f'{i + 1}. {f.rep_name} closed "{f.company}" for ${round(f.value):,} ({f.timestamp})'
        for i, f in enumerate(facts)
    )
    team_text = ""
    if team_stats:
        team_text = (
            f"\nTeam Achievement: The team has closed ${round(team_stats.total_this_month):,} "
            f"this month ({team_stats.goal_percentage}% of goal)."
        )
    return NEWS_PROMPT.format(deals=deals_text, team=team_text)


def extract_json_array(text: str) -> Optional[list]:
    """Pull the JSON array out of a reply that may wrap it in prose or markdown."""
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def parse_news_copies(articles: list, fact_count: int) -> List[NewsCopy]:
    copies = []
    for position, article in enumerate(articles):
        if not isinstance(article, dict):
            continue
        headline = article.get("headline")
        if not isinstance(headline, str) or not headline.strip():
            continue
        index = article.get("dealIndex", position)
        if not isinstance(index, int) or not 0 <= index < fact_count:
            index = None
        emoji = article.get("emoji")
        copies.append(NewsCopy(
            deal_index=index,
            emoji=emoji if isinstance(emoji, str) and emoji else None,
            headline=headline.strip(),
            body=str(article.get("body") or "").strip(),
        ))
    return copies


async def rewrite_news(
    facts: Sequence[DealFact],
    team_stats: Optional[TeamStats] = None,
    provider: Optional[str] = None,
) -> List[NewsCopy]:
    """
    Ask the text model for one article per fact.

    Raises:
        EnrichmentError: no credentials, a provider failure, or an unusable reply.
    """
    chosen = provider or default_provider()
    if not provider_configured(chosen):
        raise EnrichmentError("No API key configured", provider=chosen)
    if not facts:
        return []

    try:
        response = await ai_complete(
            task="news",
            system_prompt="",
            user_prompt=build_news_prompt(facts, team_stats),
            provider=chosen,
        )
    except Exception as e:
        raise EnrichmentError(f"Provider call failed: {e}", provider=chosen) from e

    articles = extract_json_array(response.content)
    if articles is None:
        logger.error("Failed to parse news reply: %s", response.content[:300])
        raise EnrichmentError("Reply had no JSON array", provider=chosen)
    return parse_news_copies(articles, len(facts))


async def enrich_news(
    news: List[dict],
    team_stats: Optional[dict] = None,
    timeout: float = ENRICHMENT_TIMEOUT,
    provider: Optional[str] = None,
) -> Tuple[List[dict], bool]:
    """
    Rewrite headline/body/emoji of summary news entries.

    *team_stats* is the summary's teamStats block; it is only sent to the
    model when the feed carries a milestone entry.

    Returns (entries, enriched). On any failure the input entries come back
    unchanged with enriched=False.
    """
    fact_slots = [i for i, entry in enumerate(news) if entry.get("deal")]
    if not fact_slots:
        return news, False

    facts = [
        DealFact(
            rep_name=news[i]["rep"]["name"],
            company=news[i]["deal"]["company"],
            value=news[i]["deal"]["value"],
            timestamp=news[i]["timestamp"],
        )
        for i in fact_slots
    ]
    milestone_slot = next(
        (i for i, entry in enumerate(news) if entry.get("type") == "stats"), None,
    )
    team = None
    if milestone_slot is not None and team_stats:
        team = TeamStats(
            total_this_month=team_stats.get("totalThisMonth", 0),
            goal_percentage=team_stats.get("goalPercentage", 0),
        )

    try:
        copies = await asyncio.wait_for(rewrite_news(facts, team, provider), timeout)
    except asyncio.TimeoutError:
        logger.warning("News enrichment timed out after %.1fs", timeout)
        return news, False
    except EnrichmentError as e:
        logger.info("News enrichment skipped: %s", e)
        return news, False
    except Exception as e:
        logger.warning("News enrichment failed: %s", e)
        return news, False

    rewritten = copy.deepcopy(news)
    changed = False
    for item in copies:
        if item.deal_index is not None:
            slot = fact_slots[item.deal_index]
        elif milestone_slot is not None:
            slot = milestone_slot
        else:
            continue
        entry = rewritten[slot]
        entry["headline"] = item.headline
        entry["body"] = item.body or entry["body"]
        if item.emoji:
            entry["emoji"] = item.emoji
        changed = True
    return (rewritten, True) if changed else (news, False)


async def generate_news_articles(
    facts: Sequence[DealFact],
    team_stats: Optional[TeamStats] = None,
    provider: Optional[str] = None,
) -> List[dict]:
    """Standalone articles for POST /api/generate-news. Empty list on failure."""
    if not facts:
        return []
    try:
        copies = await asyncio.wait_for(rewrite_news(facts, team_stats, provider), ENRICHMENT_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("News generation timed out")
        return []
    except EnrichmentError as e:
        logger.warning("News generation unavailable: %s", e)
        return []

    articles = []
    for index, item in enumerate(copies):
        if item.deal_index is None:
            if team_stats is None:
                continue
            articles.append({
                "id": index,
                "type": "stats",
                "emoji": item.emoji or "📊",
                "headline": item.headline,
                "body": item.body,
                "timestamp": "Today",
                "rep": {"name": "Team", "initials": "🎯", "color": TEAM_COLOR, "photoUrl": None},
            })
            continue
        fact = facts[item.deal_index]
        articles.append({
            "id": index,
            "type": "win",
            "emoji": item.emoji or ("🔥" if fact.value >= BIG_DEAL_VALUE else "🎉"),
            "headline": item.headline,
            "body": item.body,
            "timestamp": fact.timestamp,
            "rep": {
                "name": fact.rep_name,
                "initials": initials(fact.rep_name),
                "color": TEAM_COLOR,
                "photoUrl": None,
            },
        })
    return articles
