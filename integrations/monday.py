"""
Monday.com Integration
========================

Async GraphQL v2 client for the deals board and the account directory.

- Deal records: indexed query (server-side date filter) with a bounded
  full-scan fallback when the indexed query fails
- Directory users: paged 100 at a time, best effort
- Scope assignees: person column on linked scope items, best effort

Setup:
1. Monday -> Profile -> Developers -> My access tokens
2. Set MONDAY_API_TOKEN in .env (MONDAY_DEALS_BOARD_ID to override the board)
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from models.deal_models import DEAL_COLUMNS, DealColumns, DirectoryUser, Record
from salespulse.errors import MondayAPIError, RecordFetchError
from salespulse.logger import setup_logger
from salespulse.parsers import parse_date_text, parse_person_reference

logger = setup_logger("monday")

MONDAY_API_URL = "https://api.monday.com/v2"
MONDAY_API_VERSION = "2024-10"
DEALS_BOARD_ID = os.getenv("MONDAY_DEALS_BOARD_ID", "6385549292")
SCOPE_ASSIGNEE_COLUMN = os.getenv("MONDAY_SCOPE_ASSIGNEE_COLUMN", "person")
DEFAULT_TIMEOUT = float(os.getenv("MONDAY_TIMEOUT", "20"))

ITEMS_PAGE_SIZE = 500
MAX_ITEM_PAGES = 5
USERS_PAGE_SIZE = 100
MAX_USER_PAGES = 10
ITEM_IDS_CHUNK = 100

INDEXED = "indexed"
FULL_SCAN = "full_scan"

ITEM_FIELDS = """
    cursor
    items {
        id
        name
        column_values (ids: $columnIds) { id text value }
    }
"""

INDEXED_QUERY = f"""
query ($boardId: [ID!], $columnIds: [String!], $floor: CompareValue!, $dateColumn: ID!) {{
    boards (ids: $boardId) {{
        items_page (
            limit: {ITEMS_PAGE_SIZE},
            query_params: {{
                rules: [
                    {{ column_id: $dateColumn, compare_value: [], operator: is_not_empty }},
                    {{ column_id: $dateColumn, compare_value: $floor, operator: greater_than_or_equals }}
                ]
            }}
        ) {{ {ITEM_FIELDS} }}
    }}
}}
"""

SCAN_QUERY = f"""
query ($boardId: [ID!], $columnIds: [String!], $cursor: String) {{
    boards (ids: $boardId) {{
        items_page (limit: {ITEMS_PAGE_SIZE}, cursor: $cursor) {{ {ITEM_FIELDS} }}
    }}
}}
"""

NEXT_PAGE_QUERY = f"""
query ($cursor: String!, $columnIds: [String!]) {{
    next_items_page (cursor: $cursor, limit: {ITEMS_PAGE_SIZE}) {{ {ITEM_FIELDS} }}
}}
"""

USERS_QUERY = """
query ($page: Int!) {
    users (limit: %d, page: $page) { id name photo_thumb }
}
""" % USERS_PAGE_SIZE

SCOPE_ITEMS_QUERY = """
query ($ids: [ID!], $columnIds: [String!]) {
    items (ids: $ids) {
        id
        column_values (ids: $columnIds) { id text value }
    }
}
"""


# ─── Result Types ───────────────────────────────────────────

@dataclass
class GraphQLResult:
    """Outcome of one GraphQL call: data on success, error text otherwise."""
    data: Optional[dict] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FetchAttempt:
    """Outcome of one record-fetch strategy."""
    strategy: str
    records: List[Record] = field(default_factory=list)
    pages: int = 0
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, result: GraphQLResult, fallback: str = "no board in response") -> "FetchAttempt":
        self.error = result.error or fallback
        self.status_code = result.status_code
        return self


@dataclass
class FetchOutcome:
    records: List[Record]
    strategy: str
    attempts: List[FetchAttempt]


def _is_on_or_after(record: Record, column_id: str, floor: datetime) -> bool:
    signed = parse_date_text(record.attr(column_id).text)
    return signed is not None and signed >= floor


# ─── Client ─────────────────────────────────────────────────

class MondayClient:
    """Monday.com GraphQL client scoped to one deals board."""

    def __init__(self, api_token: str, board_id: str = DEALS_BOARD_ID,
                 columns: DealColumns = DEAL_COLUMNS,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.api_token = api_token
        self.board_id = str(board_id)
        self.columns = columns
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "MondayClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self

    async def __aexit__(self, *exc) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": self.api_token,
            "API-Version": MONDAY_API_VERSION,
        }

    async def _query(self, query: str, variables: Optional[dict] = None) -> GraphQLResult:
        """POST one GraphQL query. Never raises; failures come back as errors."""
        if self._session is None:
            raise RuntimeError("MondayClient must be used as 'async with'")

        body: Dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        try:
            async with self._session.post(MONDAY_API_URL, json=body, headers=self._headers()) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    logger.error("Monday API returned %d: %s", resp.status, text[:300])
                    return GraphQLResult(error=f"HTTP {resp.status}", status_code=resp.status)
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Monday API request failed: %s", e)
            return GraphQLResult(error=f"transport: {e!r}")
        except ValueError as e:
            logger.error("Monday API returned invalid JSON: %s", e)
            return GraphQLResult(error="invalid JSON body")

        if not isinstance(payload, dict):
            return GraphQLResult(error="unexpected response shape")
        if payload.get("errors"):
            logger.error("GraphQL errors: %s", payload["errors"])
            return GraphQLResult(error=f"graphql: {payload['errors']}", status_code=200)
        return GraphQLResult(data=payload.get("data") or {})

    # ── Deal records ───────────────────────────────────────

    async def fetch_records(self, floor: datetime) -> FetchOutcome:
        """
        Fetch deal records signed on or after *floor*.

        Tries the indexed query first and falls back to a capped full scan
        with client-side filtering. Raises RecordFetchError if both fail.
        """
        attempts = []
        for strategy in (self._fetch_indexed, self._fetch_full_scan):
            attempt = await strategy(floor)
            attempts.append(attempt)
            if attempt.ok:
                logger.info(
                    "Fetched %d records via %s (%d pages)",
                    len(attempt.records), attempt.strategy, attempt.pages,
                )
                return FetchOutcome(attempt.records, attempt.strategy, attempts)
            logger.warning("Record fetch via %s failed: %s", attempt.strategy, attempt.error)

        last = attempts[-1]
        raise RecordFetchError(
            "All record fetch strategies failed",
            attempts=[{"strategy": a.strategy, "error": a.error} for a in attempts],
        ) from MondayAPIError(last.error, status_code=last.status_code)

    async def _fetch_indexed(self, floor: datetime) -> FetchAttempt:
        attempt = FetchAttempt(strategy=INDEXED)
        result = await self._query(INDEXED_QUERY, {
            "boardId": [self.board_id],
            "columnIds": self.columns.ids(),
            "dateColumn": self.columns.signed_date,
            "floor": ["EXACT", floor.strftime("%Y-%m-%d")],
        })
        page = self._first_board_page(result)
        if not result.ok or page is None:
            return attempt.fail(result)

        while True:
            attempt.pages += 1
            # the server filter is trusted, but dates it can't parse are dropped anyway
            attempt.records.extend(
                r for r in self._records(page.get("items"))
                if _is_on_or_after(r, self.columns.signed_date, floor)
            )
            cursor = page.get("cursor")
            if not cursor:
                return attempt
            if attempt.pages >= MAX_ITEM_PAGES:
                logger.warning(
                    "Indexed fetch stopped at %d pages with a cursor pending; remaining records were not read",
                    MAX_ITEM_PAGES,
                )
                return attempt
            result = await self._query(NEXT_PAGE_QUERY, {
                "cursor": cursor, "columnIds": self.columns.ids(),
            })
            if not result.ok:
                return attempt.fail(result)
            page = result.data.get("next_items_page") or {}

    async def _fetch_full_scan(self, floor: datetime) -> FetchAttempt:
        attempt = FetchAttempt(strategy=FULL_SCAN)
        cursor = None
        while attempt.pages < MAX_ITEM_PAGES:
            result = await self._query(SCAN_QUERY, {
                "boardId": [self.board_id],
                "columnIds": self.columns.ids(),
                "cursor": cursor,
            })
            page = self._first_board_page(result)
            if not result.ok or page is None:
                return attempt.fail(result)

            attempt.pages += 1
            attempt.records.extend(
                r for r in self._records(page.get("items"))
                if _is_on_or_after(r, self.columns.signed_date, floor)
            )
            cursor = page.get("cursor")
            if not cursor:
                break
        else:
            logger.warning(
                "Full scan stopped at %d pages; older records were not read",
                MAX_ITEM_PAGES,
            )
        return attempt

    @staticmethod
    def _first_board_page(result: GraphQLResult) -> Optional[dict]:
        if not result.ok:
            return None
        boards = (result.data or {}).get("boards") or []
        if not boards or not isinstance(boards[0], dict):
            return None
        return boards[0].get("items_page") or {}

    @staticmethod
    def _records(items: Optional[Iterable[dict]]) -> List[Record]:
        return [Record.from_item(item) for item in items or []]

    # ── Directory ──────────────────────────────────────────

    async def fetch_directory(self) -> Dict[str, DirectoryUser]:
        """All account users keyed by string id. Partial on failure, never raises."""
        users: Dict[str, DirectoryUser] = {}
        for page in range(1, MAX_USER_PAGES + 1):
            result = await self._query(USERS_QUERY, {"page": page})
            if not result.ok:
                logger.warning(
                    "Directory page %d failed, keeping %d users: %s",
                    page, len(users), result.error,
                )
                break
            batch = result.data.get("users") or []
            for raw in batch:
                if raw.get("id") is None:
                    continue
                user = DirectoryUser.from_api(raw)
                users[user.id] = user
            if len(batch) < USERS_PAGE_SIZE:
                break
        else:
            logger.warning("Directory walk hit the %d page cap", MAX_USER_PAGES)

        logger.info("Fetched %d directory users", len(users))
        return users

    # ── Scope assignees ────────────────────────────────────

    async def fetch_scope_assignees(
        self,
        scope_ids: Iterable[str],
        directory: Dict[str, DirectoryUser],
        column_id: str = SCOPE_ASSIGNEE_COLUMN,
    ) -> Dict[str, DirectoryUser]:
        """
        Map linked scope item ids to the person assigned on that scope.

        Falls back to the column text (no photo) when the person isn't in
        the directory. Failed chunks are skipped.
        """
        ids = list(dict.fromkeys(str(i) for i in scope_ids))
        assignees: Dict[str, DirectoryUser] = {}
        for start in range(0, len(ids), ITEM_IDS_CHUNK):
            chunk = ids[start:start + ITEM_IDS_CHUNK]
            result = await self._query(SCOPE_ITEMS_QUERY, {"ids": chunk, "columnIds": [column_id]})
            if not result.ok:
                logger.warning("Scope assignee lookup failed for %d ids: %s", len(chunk), result.error)
                continue
            for item in result.data.get("items") or []:
                record = Record.from_item({**item, "name": ""})
                attr = record.attr(column_id)
                person_id = parse_person_reference(attr).value_or(None)
                user = directory.get(person_id) if person_id else None
                if user is None and (attr.text or "").strip():
                    user = DirectoryUser(id=person_id or "", name=attr.text.strip())
                if user:
                    assignees[record.id] = user
        return assignees
