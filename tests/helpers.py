"""Shared fakes for service and API tests."""

import asyncio
import json

from integrations.monday import INDEXED, FetchAttempt, FetchOutcome
from models.deal_models import Record


def deal(item_id, value, owner_id=None, scope_ids=(555,)):
    owner_value = json.dumps({"personsAndTeams": [{"id": owner_id, "kind": "person"}]}) if owner_id else None
    scope_value = json.dumps({"linkedPulseIds": [{"linkedPulseId": i} for i in scope_ids]})
    return Record.from_item({
        "id": item_id,
        "name": f"Company {item_id}\n[Type]\n{item_id}",
        "column_values": [
            {"id": "deal_owner", "text": "Jane Doe", "value": owner_value},
            {"id": "deal_value", "text": str(value), "value": None},
            {"id": "date4__1", "text": "2026-10-13", "value": None},
            {"id": "color_mm01fk8y", "text": "", "value": None},
            {"id": "link_to___scopes____1", "text": "", "value": scope_value},
        ],
    })


class FakeClient:
    """Stands in for MondayClient; records what the service asked for."""

    def __init__(self, records=None, directory=None, assignees=None, error=None, strategy=INDEXED,
                 directory_delay=0.0):
        self.records = records or []
        self.directory = directory or {}
        self.assignees = assignees or {}
        self.error = error
        self.strategy = strategy
        self.floors = []
        self.scope_requests = []
        self.tokens = []
        self.directory_delay = directory_delay
        self.is_open = False
        self.directory_calls_after_close = 0

    def __call__(self, token):
        self.tokens.append(token)
        return self

    async def __aenter__(self):
        self.is_open = True
        return self

    async def __aexit__(self, *exc):
        self.is_open = False
        return False

    async def fetch_records(self, floor):
        self.floors.append(floor)
        if self.error:
            raise self.error
        return FetchOutcome(self.records, self.strategy, [FetchAttempt(strategy=self.strategy)])

    async def fetch_directory(self):
        if self.directory_delay:
            await asyncio.sleep(self.directory_delay)
        if not self.is_open:
            self.directory_calls_after_close += 1
            raise RuntimeError("MondayClient must be used as 'async with'")
        return self.directory

    async def fetch_scope_assignees(self, scope_ids, directory):
        self.scope_requests.append(list(scope_ids))
        return self.assignees

