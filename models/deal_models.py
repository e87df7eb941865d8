"""
Sales Pulse — Deal Data Types
===============================

Plain dataclasses for what flows through the aggregation pipeline:
raw board records, directory users, parsed deals and owner accumulators.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


# ─── Board Layout ───────────────────────────────────────────

@dataclass(frozen=True)
class DealColumns:
    """Column ids on the deals board."""
    owner: str = "deal_owner"
    value: str = "deal_value"
    signed_date: str = "date4__1"
    lead_source: str = "color_mm01fk8y"
    scope: str = "link_to___scopes____1"

    def ids(self) -> List[str]:
        return [self.owner, self.value, self.signed_date, self.lead_source, self.scope]


DEAL_COLUMNS = DealColumns()


# ─── Upstream Snapshots ─────────────────────────────────────

@dataclass(frozen=True)
class Attribute:
    """One column value as Monday returns it: display text + raw JSON value."""
    text: Optional[str] = None
    raw_value: Optional[str] = None


EMPTY_ATTRIBUTE = Attribute()


@dataclass(frozen=True)
class Record:
    """A deal item from the board."""
    id: str
    display_name: str
    attributes: Dict[str, Attribute] = field(default_factory=dict)

    @classmethod
    def from_item(cls, item: dict) -> "Record":
        """Normalize a GraphQL item ({id, name, column_values}) into a Record."""
        attributes = {}
        for cv in item.get("column_values") or []:
            col_id = cv.get("id")
            if not col_id:
                continue
            attributes[col_id] = Attribute(text=cv.get("text"), raw_value=cv.get("value"))
        return cls(
            id=str(item.get("id", "")),
            display_name=item.get("name") or "",
            attributes=attributes,
        )

    def attr(self, column_id: str) -> Attribute:
        return self.attributes.get(column_id, EMPTY_ATTRIBUTE)

    @property
    def company(self) -> str:
        # Item names look like "Company Name\n [Type]\n [ID]"
        return self.display_name.split("\n")[0].strip()


@dataclass(frozen=True)
class DirectoryUser:
    """A Monday account user."""
    id: str
    name: str
    photo_url: Optional[str] = None

    @classmethod
    def from_api(cls, user: dict) -> "DirectoryUser":
        return cls(
            id=str(user.get("id")),
            name=user.get("name") or "",
            photo_url=user.get("photo_thumb") or None,
        )


# ─── Derived ────────────────────────────────────────────────

@dataclass
class ParsedDeal:
    """Typed view of a Record after attribute parsing."""
    record_id: str
    company: str
    owner: str
    value: float
    signed_date: Optional[datetime]
    category: str = ""
    owner_photo_url: Optional[str] = None
    linked_ids: List[str] = field(default_factory=list)
    has_linked_scope: bool = False


@dataclass
class OwnerAggregate:
    """Per-owner accumulators, built during one aggregation pass."""
    name: str
    photo_url: Optional[str] = None
    current_month: float = 0.0
    current_month_cw: float = 0.0
    current_month_ae: float = 0.0
    last_month: float = 0.0
    deals: List[ParsedDeal] = field(default_factory=list)
