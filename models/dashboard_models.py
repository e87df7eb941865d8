"""
Sales Pulse — Dashboard Pydantic Models
=========================================

Settings object persisted per account, and request bodies for the
settings and news endpoints. Field names are camelCase on the wire.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ─── Settings ───────────────────────────────────────────────

class DashboardSettings(_CamelModel):
    """Tunables read on every summary request."""
    top_deals_min_threshold: float = Field(5000, ge=0)
    cw_goal: float = Field(100000, gt=0)
    ae_goal: float = Field(100000, gt=0)
    primary_color: str = "#8B5CF6"
    accent_color: str = "#14B8A6"
    background_color: str = "#F9FAFB"
    excluded_reps: List[str] = Field(default_factory=list)

    def to_public(self) -> dict:
        return self.model_dump(by_alias=True)


class SettingsUpdate(_CamelModel):
    """Partial settings accepted by POST /api/settings. Unknown keys are dropped."""
    top_deals_min_threshold: Optional[float] = Field(None, ge=0)
    cw_goal: Optional[float] = Field(None, gt=0)
    ae_goal: Optional[float] = Field(None, gt=0)
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None
    background_color: Optional[str] = None
    excluded_reps: Optional[List[str]] = None


# ─── News ───────────────────────────────────────────────────

class DealFact(_CamelModel):
    """One closed deal, as fed to the news writer."""
    rep_name: str
    company: str
    value: float = Field(0, ge=0)
    timestamp: str = ""


class TeamStats(_CamelModel):
    total_this_month: float = 0
    goal_percentage: int = 0


class NewsRequest(_CamelModel):
    deals: List[DealFact] = Field(default_factory=list)
    team_stats: Optional[TeamStats] = None
