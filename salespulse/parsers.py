"""
Attribute parsers for Monday.com column values.

Every parser is total: bad input never raises. The JSON-backed parsers
return a ParseResult so callers can tell "not set" from "garbage",
though in practice both are treated as absent.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from models.deal_models import Attribute

T = TypeVar("T")

_NUMERIC_JUNK = re.compile(r"[^\d.\-]")

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%m/%d/%Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


class ParseStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    status: ParseStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ParseResult[T]":
        return cls(ParseStatus.OK, value)

    @classmethod
    def absent(cls) -> "ParseResult[T]":
        return cls(ParseStatus.ABSENT)

    @classmethod
    def malformed(cls, reason: str) -> "ParseResult[T]":
        return cls(ParseStatus.MALFORMED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is ParseStatus.OK

    def value_or(self, default: T) -> T:
        """Collapse ABSENT and MALFORMED to *default*."""
        return self.value if self.is_ok else default


def _load_json(raw: Optional[str]) -> ParseResult[Any]:
    if raw is None or not str(raw).strip():
        return ParseResult.absent()
    try:
        return ParseResult.ok(json.loads(raw))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        return ParseResult.malformed(f"invalid JSON: {e}")


# ─── Scalars ────────────────────────────────────────────────

def parse_money(attr: Attribute) -> float:
    """Deal value from the column text. Unparseable or negative -> 0."""
    text = attr.text
    if not text:
        return 0.0
    try:
        value = float(str(text).strip())
    except ValueError:
        cleaned = _NUMERIC_JUNK.sub("", str(text))
        try:
            value = float(cleaned) if cleaned else 0.0
        except ValueError:
            return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def parse_date_text(val: Any) -> Optional[datetime]:
    """Parse a date/datetime string into a naive local datetime."""
    if not val:
        return None
    if isinstance(val, datetime):
        return val.astimezone().replace(tzinfo=None) if val.tzinfo else val
    s = str(val).strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        dt = None
        for fmt in DATE_FORMATS:
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
    if dt is None:
        return None
    if dt.tzinfo:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def parse_signed_date(attr: Attribute) -> Optional[datetime]:
    return parse_date_text(attr.text)


def parse_category(attr: Attribute) -> str:
    # passthrough; the AE bucket is an exact match on this text
    return attr.text or ""


# ─── Embedded JSON ──────────────────────────────────────────

def parse_person_reference(attr: Attribute) -> ParseResult[str]:
    """
    First person id out of a people column value.

    Value shape: {"personsAndTeams": [{"id": 123, "kind": "person"}, ...]}.
    A leading team entry yields ABSENT, since a team has no photo.
    """
    loaded = _load_json(attr.raw_value)
    if not loaded.is_ok:
        return loaded
    payload = loaded.value
    if not isinstance(payload, dict):
        return ParseResult.malformed("people value is not an object")
    entries = payload.get("personsAndTeams")
    if entries is None:
        return ParseResult.absent()
    if not isinstance(entries, list):
        return ParseResult.malformed("personsAndTeams is not a list")
    if not entries:
        return ParseResult.absent()
    first = entries[0]
    if not isinstance(first, dict) or first.get("id") in (None, ""):
        return ParseResult.malformed("first entry has no id")
    if first.get("kind", "person") != "person":
        return ParseResult.absent()
    return ParseResult.ok(str(first["id"]))


def parse_linked_ids(attr: Attribute) -> ParseResult[List[str]]:
    """
    Linked item ids out of a board_relation column value.

    Value shape: {"linkedPulseIds": [{"linkedPulseId": 123}, ...]}.
    """
    loaded = _load_json(attr.raw_value)
    if not loaded.is_ok:
        return loaded
    payload = loaded.value
    if not isinstance(payload, dict):
        return ParseResult.malformed("relation value is not an object")
    links = payload.get("linkedPulseIds")
    if links is None:
        return ParseResult.absent()
    if not isinstance(links, list):
        return ParseResult.malformed("linkedPulseIds is not a list")
    ids = []
    for link in links:
        if isinstance(link, dict) and link.get("linkedPulseId") not in (None, ""):
            ids.append(str(link["linkedPulseId"]))
    return ParseResult.ok(ids)


def has_linked_scope(attr: Attribute, linked_ids: Optional[List[str]] = None) -> bool:
    """
    A deal has a scope if either signal is present.

    Upstream fills the display text and the relation JSON inconsistently,
    so either a non-blank text or a non-empty id list counts.
    """
    if linked_ids is None:
        linked_ids = parse_linked_ids(attr).value_or([])
    return bool(linked_ids) or bool((attr.text or "").strip())
