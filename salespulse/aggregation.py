"""
Sales Pulse — Aggregation Engine
==================================

Folds won deals into the dashboard summary: per-rep monthly totals split
by lead source, best deal of this week and last week, and a short news
feed.

Everything here is a pure function of (records, directory, params, now).
The caller supplies "now" so two runs over the same inputs produce the
same payload byte for byte.

Key rules:
  - A deal without a signed date counts for nothing.
  - Current month and previous month are calendar months; a deal lands in
    at most one of them.
  - Current-month revenue is "AE Sourced" only on an exact label match;
    every other label (blank included) counts as CW Sourced.
  - Weeks start Sunday at local midnight. Highlight candidates need a
    linked scope and must meet the minimum deal value.
  - excludedReps hides reps from the leaderboard only, never from totals.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from models.deal_models import (
    DEAL_COLUMNS,
    DealColumns,
    DirectoryUser,
    OwnerAggregate,
    ParsedDeal,
    Record,
)
from salespulse.parsers import (
    has_linked_scope,
    parse_category,
    parse_linked_ids,
    parse_money,
    parse_person_reference,
    parse_signed_date,
)

AE_SOURCED_LABEL = "AE Sourced"
UNKNOWN_OWNER = "Unknown"

REP_COLORS = [
    "#8B5CF6", "#14B8A6", "#F472B6", "#F59E0B",
    "#3B82F6", "#EC4899", "#06B6D4", "#84CC16",
    "#EF4444", "#6366F1", "#10B981", "#F97316",
]
UNRANKED_REP_COLOR = "#6B7280"
TEAM_COLOR = "#8B5CF6"

LEADERBOARD_SIZE = 10
NEWS_CANDIDATE_LIMIT = 8
NEWS_LIMIT = 6
BIG_DEAL_VALUE = 10000

THIS_WEEK = "this_week"
LAST_WEEK = "last_week"
CURRENT_MONTH = "current"
PREVIOUS_MONTH = "previous"


@dataclass(frozen=True)
class AggregationParams:
    """Tunables for one aggregation pass."""
    min_threshold: float = 0.0
    monthly_goal: float = 100000.0
    cw_goal: float = 100000.0
    ae_goal: float = 100000.0
    excluded_reps: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, settings, min_threshold: Optional[float] = None,
                      monthly_goal: float = 100000.0) -> "AggregationParams":
        threshold = settings.top_deals_min_threshold if min_threshold is None else min_threshold
        return cls(
            min_threshold=max(0.0, float(threshold)),
            monthly_goal=float(monthly_goal),
            cw_goal=float(settings.cw_goal),
            ae_goal=float(settings.ae_goal),
            excluded_reps=frozenset(settings.excluded_reps),
        )


# ─── Calendar Helpers ───────────────────────────────────────

def shift_months(dt: datetime, months: int) -> datetime:
    """First day of the month *months* away from dt's month."""
    index = dt.year * 12 + (dt.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1)


def date_floor(now: datetime) -> datetime:
    """Oldest signed date worth fetching: the 1st of the month two months back."""
    return shift_months(now, -2)


def week_start(now: datetime) -> datetime:
    """Sunday 00:00 of the week containing *now*."""
    days_since_sunday = (now.weekday() + 1) % 7
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=days_since_sunday)


def classify_month(signed: datetime, now: datetime) -> Optional[str]:
    if (signed.year, signed.month) == (now.year, now.month):
        return CURRENT_MONTH
    previous = shift_months(now, -1)
    if (signed.year, signed.month) == (previous.year, previous.month):
        return PREVIOUS_MONTH
    return None


def classify_week(signed: datetime, now: datetime) -> Optional[str]:
    this_week = week_start(now)
    if this_week <= signed < this_week + timedelta(days=7):
        return THIS_WEEK
    if this_week - timedelta(days=7) <= signed < this_week:
        return LAST_WEEK
    return None


def format_relative(signed: datetime, now: datetime) -> str:
    seconds = (now - signed).total_seconds()
    hours = math.floor(seconds / 3600)
    days = math.floor(seconds / 86400)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if days == 1:
        return "1 day ago"
    return f"{days} days ago"


# ─── Formatting Helpers ─────────────────────────────────────

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _plain_number(value: float):
    return int(value) if float(value).is_integer() else value


def initials(name: str) -> str:
    return "".join(part[0] for part in name.split(" ") if part).upper()[:2]


def rep_id(name: str) -> str:
    return "_".join(name.split()).lower()


def first_name(name: str) -> str:
    return name.split(" ")[0] if name else name


# ─── Parsing ────────────────────────────────────────────────

def parse_deal(record: Record, directory: Mapping[str, DirectoryUser],
               columns: DealColumns = DEAL_COLUMNS) -> ParsedDeal:
    owner_attr = record.attr(columns.owner)
    person_id = parse_person_reference(owner_attr).value_or(None)
    user = directory.get(person_id) if person_id else None

    owner = (owner_attr.text or "").strip() or (user.name if user else "") or UNKNOWN_OWNER
    scope_attr = record.attr(columns.scope)
    linked_ids = parse_linked_ids(scope_attr).value_or([])

    return ParsedDeal(
        record_id=record.id,
        company=record.company,
        owner=owner,
        value=parse_money(record.attr(columns.value)),
        signed_date=parse_signed_date(record.attr(columns.signed_date)),
        category=parse_category(record.attr(columns.lead_source)),
        owner_photo_url=user.photo_url if user else None,
        linked_ids=linked_ids,
        has_linked_scope=has_linked_scope(scope_attr, linked_ids),
    )


def parse_deals(records: Iterable[Record], directory: Mapping[str, DirectoryUser],
                columns: DealColumns = DEAL_COLUMNS) -> List[ParsedDeal]:
    """Parse records, dropping any without a signed date."""
    deals = []
    for record in records:
        deal = parse_deal(record, directory, columns)
        if deal.signed_date is None:
            continue
        deals.append(deal)
    return deals


def find_highlight_candidates(deals: Iterable[ParsedDeal], now: datetime,
                              min_threshold: float) -> List[Tuple[ParsedDeal, str]]:
    """Deals eligible for highlights/news, with their week window, in input order."""
    candidates = []
    for deal in deals:
        window = classify_week(deal.signed_date, now)
        if window and deal.has_linked_scope and deal.value >= min_threshold:
            candidates.append((deal, window))
    return candidates


# ─── Summary ────────────────────────────────────────────────

def build_summary(
    records: Iterable[Record],
    directory: Mapping[str, DirectoryUser],
    params: AggregationParams,
    now: datetime,
    scope_assignees: Optional[Mapping[str, DirectoryUser]] = None,
    columns: DealColumns = DEAL_COLUMNS,
) -> dict:
    """
    Build the full dashboard payload.

    Args:
        records: Deal items from the board (upstream order matters for ties).
        directory: user id -> DirectoryUser, used for owner photos.
        params: Thresholds, goals and leaderboard exclusions.
        now: Reference time for month and week windows.
        scope_assignees: scope item id -> assignee, for highlight enrichment.
        columns: Board column ids.

    Returns:
        Dict with salesReps, topDeals, cwTarget, aeTarget, teamStats and news.
    """
    scope_assignees = scope_assignees or {}
    deals = parse_deals(records, directory, columns)

    owners: Dict[str, OwnerAggregate] = {}
    cw_total = 0.0
    ae_total = 0.0

    for deal in deals:
        owner = owners.get(deal.owner)
        if owner is None:
            owner = owners[deal.owner] = OwnerAggregate(name=deal.owner)
        if owner.photo_url is None and deal.owner_photo_url:
            owner.photo_url = deal.owner_photo_url

        bucket = classify_month(deal.signed_date, now)
        if bucket == CURRENT_MONTH:
            owner.current_month += deal.value
            if deal.category == AE_SOURCED_LABEL:
                owner.current_month_ae += deal.value
                ae_total += deal.value
            else:
                owner.current_month_cw += deal.value
                cw_total += deal.value
        elif bucket == PREVIOUS_MONTH:
            owner.last_month += deal.value

        owner.deals.append(deal)

    sales_reps = _build_leaderboard(owners.values(), params.excluded_reps)
    ranked = {rep["name"]: rep for rep in sales_reps}

    def rep_info(name: str) -> dict:
        rep = ranked.get(name)
        if rep:
            return {
                "name": rep["name"],
                "initials": rep["initials"],
                "color": rep["color"],
                "photoUrl": rep["photoUrl"],
            }
        owner = owners.get(name)
        return {
            "name": name,
            "initials": initials(name),
            "color": UNRANKED_REP_COLOR,
            "photoUrl": owner.photo_url if owner else None,
        }

    candidates = find_highlight_candidates(deals, now, params.min_threshold)

    top_deals = {
        "thisWeek": _highlight(candidates, THIS_WEEK, rep_info, scope_assignees),
        "lastWeek": _highlight(candidates, LAST_WEEK, rep_info, scope_assignees),
    }

    team_total = cw_total + ae_total
    goal_percentage = (
        round_half_up(team_total / params.monthly_goal * 100)
        if params.monthly_goal > 0 else 0
    )
    news = _build_news(candidates, now, rep_info)
    if goal_percentage > 100:
        news.insert(0, _milestone_entry(team_total, goal_percentage))

    return {
        "salesReps": sales_reps,
        "topDeals": top_deals,
        "cwTarget": {
            "current": round_half_up(cw_total),
            "goal": _plain_number(params.cw_goal),
            "label": "CW Sourced Target",
        },
        "aeTarget": {
            "current": round_half_up(ae_total),
            "goal": _plain_number(params.ae_goal),
            "label": "AE Sourced Target",
        },
        "teamStats": {
            "totalThisMonth": round_half_up(team_total),
            "goal": _plain_number(params.monthly_goal),
            "goalPercentage": goal_percentage,
        },
        "news": news[:NEWS_LIMIT],
    }


def _build_leaderboard(owners: Iterable[OwnerAggregate],
                       excluded: FrozenSet[str]) -> List[dict]:
    eligible = [
        o for o in owners
        if (o.current_month > 0 or o.last_month > 0) and o.name not in excluded
    ]
    # sorted() is stable: equal totals keep upstream order
    ranked = sorted(eligible, key=lambda o: o.current_month, reverse=True)[:LEADERBOARD_SIZE]
    return [
        {
            "repId": rep_id(o.name),
            "name": o.name,
            "initials": initials(o.name),
            "color": REP_COLORS[index % len(REP_COLORS)],
            "photoUrl": o.photo_url,
            "currentMonth": round_half_up(o.current_month),
            "currentMonthCW": round_half_up(o.current_month_cw),
            "currentMonthAE": round_half_up(o.current_month_ae),
            "lastMonth": round_half_up(o.last_month),
        }
        for index, o in enumerate(ranked)
    ]


def _highlight(candidates, window: str, rep_info,
               scope_assignees: Mapping[str, DirectoryUser]) -> Optional[dict]:
    best: Optional[ParsedDeal] = None
    for deal, deal_window in candidates:
        if deal_window != window:
            continue
        if best is None or deal.value > best.value:
            best = deal
    if best is None:
        return None

    assignee = None
    for linked_id in best.linked_ids:
        user = scope_assignees.get(linked_id)
        if user:
            assignee = {
                "name": user.name,
                "initials": initials(user.name),
                "color": UNRANKED_REP_COLOR,
                "photoUrl": user.photo_url,
            }
            break

    return {
        "company": best.company,
        "value": round_half_up(best.value),
        "rep": rep_info(best.owner),
        "se": assignee,
    }


def _build_news(candidates, now: datetime, rep_info) -> List[dict]:
    recent = sorted(
        (deal for deal, _ in candidates),
        key=lambda d: d.signed_date,
        reverse=True,
    )[:NEWS_CANDIDATE_LIMIT]

    news = []
    for index, deal in enumerate(recent):
        big = deal.value >= BIG_DEAL_VALUE
        news.append({
            "id": index + 1,
            "type": "win",
            "emoji": "🔥" if big else "🎉",
            "headline": (
                f"{first_name(deal.owner)} closes {deal.company} "
                f"for ${round_half_up(deal.value):,}!"
            ),
            "body": "Big deal alert!" if big else "Another one in the books.",
            "timestamp": format_relative(deal.signed_date, now),
            "rep": rep_info(deal.owner),
            "deal": {"company": deal.company, "value": round_half_up(deal.value)},
        })
    return news


def _milestone_entry(team_total: float, goal_percentage: int) -> dict:
    return {
        "id": 0,
        "type": "stats",
        "emoji": "📊",
        "headline": f"Team hits {goal_percentage}% of monthly goal!",
        "body": f"${round_half_up(team_total):,} closed this month.",
        "timestamp": "Today",
        "rep": {"name": "Team", "initials": "🎯", "color": TEAM_COLOR, "photoUrl": None},
        "deal": None,
    }
