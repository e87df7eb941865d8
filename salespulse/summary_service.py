"""
Sales Pulse — Summary Service
===============================

Builds the dashboard summary for one request:

    settings -> (records || directory) -> scope assignees -> aggregate
             -> optional news enrichment -> cache

One instance lives on app.state; it owns nothing global.
"""
from __future__ import annotations

import asyncio
import os
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from integrations.monday import FetchOutcome, MondayClient
from models.deal_models import DEAL_COLUMNS, DirectoryUser
from salespulse.aggregation import (
    AggregationParams,
    build_summary,
    date_floor,
    find_highlight_candidates,
    parse_deals,
)
from salespulse.cache import SummaryCache
from salespulse.errors import ConfigError
from salespulse.logger import setup_logger
from salespulse.news_writer import enrich_news
from salespulse.parsers import parse_person_reference
from salespulse.settings_store import SettingsStore

logger = setup_logger("summary_service")

MONTHLY_GOAL = float(os.getenv("MONTHLY_GOAL", "100000"))


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


class SummaryService:
    """Request-scoped orchestration over the Monday client, engine and caches."""

    def __init__(
        self,
        settings_store: SettingsStore,
        cache: SummaryCache,
        client_factory: Optional[Callable[[str], MondayClient]] = None,
        monthly_goal: float = MONTHLY_GOAL,
        enrich: Optional[bool] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings_store = settings_store
        self.cache = cache
        self._client_factory = client_factory or MondayClient
        self.monthly_goal = monthly_goal
        self.enrich = _env_flag("NEWS_ENRICHMENT") if enrich is None else enrich
        self._now = now

    @staticmethod
    def api_token() -> Optional[str]:
        return os.getenv("MONDAY_API_TOKEN") or None

    @property
    def is_configured(self) -> bool:
        return self.api_token() is not None

    def _client(self) -> MondayClient:
        token = self.api_token()
        if not token:
            raise ConfigError("Monday API token not configured", setting="MONDAY_API_TOKEN")
        return self._client_factory(token)

    @staticmethod
    async def _fetch_board(client: MondayClient, now: datetime) -> Tuple[FetchOutcome, Dict[str, DirectoryUser]]:
        """
        Records and directory, fetched concurrently.

        Both calls settle before this returns, so neither outlives the
        client session. A record failure is re-raised after the directory
        call finishes.
        """
        outcome, directory = await asyncio.gather(
            client.fetch_records(date_floor(now)),
            client.fetch_directory(),
            return_exceptions=True,
        )
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(directory, BaseException):
            raise directory
        return outcome, directory

    async def get_summary(self, min_threshold: Optional[float] = None) -> Tuple[dict, bool]:
        """
        Summary for the requested threshold.

        Returns:
            (summary, cache_hit)

        Raises:
            ConfigError: MONDAY_API_TOKEN is missing.
            RecordFetchError: deal records could not be fetched.
        """
        settings, _ = self.settings_store.get()
        default_threshold = settings.top_deals_min_threshold
        threshold = default_threshold if min_threshold is None else max(0.0, min_threshold)

        cached = self.cache.get(threshold, default_threshold)
        if cached is not None:
            return cached, True

        params = AggregationParams.from_settings(settings, threshold, self.monthly_goal)
        summary = await self.build(params)
        self.cache.put(summary, threshold, default_threshold)
        return summary, False

    async def build(self, params: AggregationParams) -> dict:
        now = self._now()
        async with self._client() as client:
            outcome, directory = await self._fetch_board(client, now)

            deals = parse_deals(outcome.records, directory)
            scope_ids = [
                linked_id
                for deal, _ in find_highlight_candidates(deals, now, params.min_threshold)
                for linked_id in deal.linked_ids
            ]
            assignees = {}
            if scope_ids:
                assignees = await client.fetch_scope_assignees(scope_ids, directory)

        summary = build_summary(outcome.records, directory, params, now, assignees)

        enriched = False
        if self.enrich:
            summary["news"], enriched = await enrich_news(summary["news"], summary["teamStats"])

        summary["_meta"] = {
            "fetchStrategy": outcome.strategy,
            "recordCount": len(outcome.records),
            "directorySize": len(directory),
            "minThreshold": params.min_threshold,
            "newsEnriched": enriched,
            "generatedAt": now.isoformat(timespec="seconds"),
        }
        logger.info(
            "Summary built: %d records via %s, %d reps, %d news",
            len(outcome.records), outcome.strategy,
            len(summary["salesReps"]), len(summary["news"]),
        )
        return summary

    async def directory_diagnostics(self, sample_size: int = 20) -> dict:
        """How deal owners resolve against the directory (photos, parse status)."""
        now = self._now()
        async with self._client() as client:
            outcome, directory = await self._fetch_board(client, now)

        samples = []
        for record in outcome.records[:sample_size]:
            owner_attr = record.attr(DEAL_COLUMNS.owner)
            person = parse_person_reference(owner_attr)
            user = directory.get(person.value) if person.is_ok else None
            samples.append({
                "itemName": record.company,
                "ownerText": owner_attr.text,
                "personRef": person.status.value,
                "personId": person.value,
                "matchedUser": (
                    {"id": user.id, "name": user.name, "hasPhoto": bool(user.photo_url)}
                    if user else None
                ),
            })

        users = list(directory.values())
        return {
            "totalUsers": len(users),
            "usersWithPhotos": sum(1 for u in users if u.photo_url),
            "usersWithoutPhotos": [
                {"id": u.id, "name": u.name} for u in users if not u.photo_url
            ],
            "fetchStrategy": outcome.strategy,
            "sampleOwnerInfo": samples,
        }
