"""Tests for the dashboard aggregation engine."""

import json
from datetime import datetime

import pytest

from models.deal_models import DirectoryUser, Record
from salespulse.aggregation import (
    LAST_WEEK,
    REP_COLORS,
    THIS_WEEK,
    UNRANKED_REP_COLOR,
    AggregationParams,
    build_summary,
    classify_month,
    classify_week,
    date_floor,
    format_relative,
    week_start,
)

# Wednesday; the week started Sunday 2026-10-11
NOW = datetime(2026, 10, 14, 15, 0)


def make_record(item_id, name, owner="Jane Doe", value="15000", signed="2026-10-14",
                source="", scope_text="Scope A", scope_value=None, owner_value=None):
    return Record.from_item({
        "id": item_id,
        "name": name,
        "column_values": [
            {"id": "deal_owner", "text": owner, "value": owner_value},
            {"id": "deal_value", "text": value, "value": None},
            {"id": "date4__1", "text": signed, "value": None},
            {"id": "color_mm01fk8y", "text": source, "value": None},
            {"id": "link_to___scopes____1", "text": scope_text, "value": scope_value},
        ],
    })


def person_ref(user_id):
    return json.dumps({"personsAndTeams": [{"id": user_id, "kind": "person"}]})


def summarize(records, directory=None, **params):
    params.setdefault("min_threshold", 0)
    return build_summary(records, directory or {}, AggregationParams(**params), NOW)


def rep(summary, name):
    return next(r for r in summary["salesReps"] if r["name"] == name)


class TestCalendar:
    def test_week_starts_sunday_midnight(self):
        assert week_start(NOW) == datetime(2026, 10, 11)
        assert week_start(datetime(2026, 10, 11, 0, 0)) == datetime(2026, 10, 11)

    def test_week_windows(self):
        assert classify_week(datetime(2026, 10, 11), NOW) == THIS_WEEK
        assert classify_week(datetime(2026, 10, 10, 23, 59), NOW) == LAST_WEEK
        assert classify_week(datetime(2026, 10, 4), NOW) == LAST_WEEK
        assert classify_week(datetime(2026, 10, 3), NOW) is None

    def test_month_buckets_are_exclusive(self):
        assert classify_month(datetime(2026, 10, 1), NOW) == "current"
        assert classify_month(datetime(2026, 9, 30), NOW) == "previous"
        assert classify_month(datetime(2026, 8, 31), NOW) is None
        assert classify_month(datetime(2025, 10, 14), NOW) is None

    def test_previous_month_across_new_year(self):
        assert classify_month(datetime(2025, 12, 20), datetime(2026, 1, 5)) == "previous"

    def test_date_floor_is_first_of_month_two_back(self):
        assert date_floor(NOW) == datetime(2026, 8, 1)
        assert date_floor(datetime(2026, 1, 15)) == datetime(2025, 11, 1)

    def test_relative_timestamps(self):
        assert format_relative(datetime(2026, 10, 14, 14, 30), NOW) == "Just now"
        assert format_relative(datetime(2026, 10, 14), NOW) == "15 hours ago"
        assert format_relative(datetime(2026, 10, 13), NOW) == "1 day ago"
        assert format_relative(datetime(2026, 10, 10), NOW) == "4 days ago"


class TestScenarios:
    def test_cw_sourced_deal_this_week(self):
        summary = summarize([make_record("1", "Acme Corp\n[Type]\n123")])

        jane = rep(summary, "Jane Doe")
        assert jane["currentMonth"] == 15000
        assert jane["currentMonthCW"] == 15000
        assert jane["currentMonthAE"] == 0
        assert summary["cwTarget"]["current"] == 15000
        assert summary["topDeals"]["thisWeek"]["company"] == "Acme Corp"
        assert summary["topDeals"]["thisWeek"]["value"] == 15000
        assert summary["topDeals"]["lastWeek"] is None

    def test_ae_sourced_label(self):
        summary = summarize([make_record("1", "Acme Corp\n[Type]\n123", source="AE Sourced")])

        jane = rep(summary, "Jane Doe")
        assert jane["currentMonthAE"] == 15000
        assert jane["currentMonthCW"] == 0
        assert summary["aeTarget"]["current"] == 15000
        assert summary["cwTarget"]["current"] == 0

    def test_unrecognised_label_counts_as_cw(self):
        summary = summarize([make_record("1", "Acme", source="ae sourced")])
        assert rep(summary, "Jane Doe")["currentMonthCW"] == 15000

    def test_owner_missing_from_directory_has_no_photo(self):
        directory = {"1": DirectoryUser(id="1", name="Someone Else", photo_url="http://img/1")}
        summary = summarize([make_record("1", "Acme", owner_value=person_ref(999))], directory)

        assert rep(summary, "Jane Doe")["photoUrl"] is None

    def test_owner_photo_from_directory(self):
        directory = {"42": DirectoryUser(id="42", name="Jane Doe", photo_url="http://img/42")}
        summary = summarize([make_record("1", "Acme", owner_value=person_ref(42))], directory)

        assert rep(summary, "Jane Doe")["photoUrl"] == "http://img/42"
        assert summary["topDeals"]["thisWeek"]["rep"]["photoUrl"] == "http://img/42"

    def test_below_threshold_counts_in_totals_only(self):
        summary = summarize([make_record("1", "Acme", value="4999")], min_threshold=5000)

        assert rep(summary, "Jane Doe")["currentMonth"] == 4999
        assert summary["topDeals"] == {"thisWeek": None, "lastWeek": None}
        assert summary["news"] == []

    def test_milestone_displaces_oldest_entry(self):
        days = [14, 13, 12, 11, 10, 9]
        records = [
            make_record(str(d), f"Company {d}", owner=f"Rep {d}", value="17500", signed=f"2026-10-{d:02d}")
            for d in days
        ]
        summary = summarize(records, monthly_goal=100000)

        news = summary["news"]
        assert len(news) == 6
        assert news[0]["type"] == "stats"
        assert news[0]["headline"] == "Team hits 105% of monthly goal!"
        assert news[0]["rep"]["name"] == "Team"
        assert sum(1 for n in news if n["type"] == "stats") == 1
        companies = [n["deal"]["company"] for n in news[1:]]
        assert companies == ["Company 14", "Company 13", "Company 12", "Company 11", "Company 10"]

    def test_no_milestone_at_goal(self):
        summary = summarize([make_record("1", "Acme", value="100000")], monthly_goal=100000)
        assert all(n["type"] == "win" for n in summary["news"])
        assert summary["teamStats"]["goalPercentage"] == 100


class TestInvariants:
    def test_missing_signed_date_contributes_nothing(self):
        records = [
            make_record("1", "No Date", signed=""),
            make_record("2", "Bad Date", signed="soon"),
        ]
        summary = summarize(records)

        assert summary["salesReps"] == []
        assert summary["news"] == []
        assert summary["topDeals"] == {"thisWeek": None, "lastWeek": None}
        assert summary["cwTarget"]["current"] == 0

    def test_previous_month_goes_to_last_month_only(self):
        summary = summarize([make_record("1", "Acme", signed="2026-09-20")])

        jane = rep(summary, "Jane Doe")
        assert jane["lastMonth"] == 15000
        assert jane["currentMonth"] == 0
        assert jane["currentMonthCW"] == 0

    def test_owner_with_only_older_deals_is_excluded(self):
        summary = summarize([make_record("1", "Acme", signed="2026-08-15")])
        assert summary["salesReps"] == []

    def test_category_split_adds_up(self):
        records = [
            make_record("1", "A", value="1000"),
            make_record("2", "B", value="2500", source="AE Sourced"),
            make_record("3", "C", value="700", source="Partner"),
        ]
        jane = rep(summarize(records), "Jane Doe")
        assert jane["currentMonthCW"] + jane["currentMonthAE"] == jane["currentMonth"] == 4200

    def test_negative_values_never_reach_totals(self):
        records = [make_record("1", "A", value="-5000"), make_record("2", "B", value="1000")]
        summary = summarize(records)
        assert rep(summary, "Jane Doe")["currentMonth"] == 1000

    def test_leaderboard_top_ten_sorted_and_colored(self):
        records = [
            make_record(str(i), f"Co {i}", owner=f"Rep {i:02d}", value=str(1000 * (i + 1)))
            for i in range(12)
        ]
        reps = summarize(records)["salesReps"]

        assert len(reps) == 10
        totals = [r["currentMonth"] for r in reps]
        assert totals == sorted(totals, reverse=True)
        assert reps[0]["name"] == "Rep 11"
        assert [r["color"] for r in reps] == REP_COLORS[:10]

    def test_excluded_rep_hidden_but_counted(self):
        records = [
            make_record("1", "A", owner="Jane Doe", value="1000"),
            make_record("2", "B", owner="Bob Stone", value="9000"),
        ]
        summary = summarize(records, excluded_reps=frozenset({"Bob Stone"}))

        assert [r["name"] for r in summary["salesReps"]] == ["Jane Doe"]
        assert summary["cwTarget"]["current"] == 10000
        bob_news = next(n for n in summary["news"] if n["rep"]["name"] == "Bob Stone")
        assert bob_news["rep"]["color"] == UNRANKED_REP_COLOR

    def test_highlight_without_assignee_has_null_se(self):
        summary = summarize([make_record("1", "Acme")])
        assert summary["topDeals"]["thisWeek"]["se"] is None

    def test_highlight_requires_linked_scope(self):
        summary = summarize([make_record("1", "Acme", scope_text="", scope_value=None)])
        assert summary["topDeals"]["thisWeek"] is None
        assert rep(summary, "Jane Doe")["currentMonth"] == 15000

    def test_highlight_is_max_per_window_with_stable_ties(self):
        records = [
            make_record("1", "First", value="8000"),
            make_record("2", "Second", value="8000"),
            make_record("3", "Small", value="100"),
            make_record("4", "Last Week Big", value="20000", signed="2026-10-06"),
            make_record("5", "Last Week Small", value="3000", signed="2026-10-07"),
        ]
        top = summarize(records)["topDeals"]

        assert top["thisWeek"]["company"] == "First"
        assert top["lastWeek"]["company"] == "Last Week Big"

    def test_scope_assignee_first_match_wins(self):
        scope_value = json.dumps({"linkedPulseIds": [{"linkedPulseId": 554}, {"linkedPulseId": 555}]})
        assignees = {
            "555": DirectoryUser(id="7", name="Sam Scope", photo_url="http://img/7"),
            "556": DirectoryUser(id="8", name="Other"),
        }
        summary = build_summary(
            [make_record("1", "Acme", scope_text="", scope_value=scope_value)],
            {}, AggregationParams(), NOW, assignees,
        )

        highlight = summary["topDeals"]["thisWeek"]
        assert "scopeAssignee" not in highlight
        assert highlight["se"] == {
            "name": "Sam Scope", "initials": "SS", "color": UNRANKED_REP_COLOR, "photoUrl": "http://img/7",
        }

    def test_news_is_newest_first_and_capped(self):
        records = [
            make_record(str(d), f"Co {d}", value="500", signed=f"2026-10-{d:02d}")
            for d in (5, 12, 7, 14, 9, 4, 11, 13, 6, 10)
        ]
        news = summarize(records)["news"]

        assert len(news) == 6
        assert [n["id"] for n in news] == [1, 2, 3, 4, 5, 6]
        assert [n["deal"]["company"] for n in news] == ["Co 14", "Co 13", "Co 12", "Co 11", "Co 10", "Co 9"]

    @pytest.mark.parametrize("value, emoji, body", [
        ("10000", "🔥", "Big deal alert!"),
        ("9999", "🎉", "Another one in the books."),
    ])
    def test_news_tone_by_value(self, value, emoji, body):
        news = summarize([make_record("1", "Acme", value=value)])["news"]
        assert news[0]["emoji"] == emoji
        assert news[0]["body"] == body
        assert news[0]["headline"].startswith("Jane closes Acme for $")

    def test_output_is_idempotent(self):
        directory = {"42": DirectoryUser(id="42", name="Jane Doe", photo_url="http://img/42")}
        records = [
            make_record("1", "Acme", owner_value=person_ref(42)),
            make_record("2", "Beta", owner="Bob Stone", value="7000", signed="2026-10-05"),
            make_record("3", "Gamma", value="3000", signed="2026-09-02", source="AE Sourced"),
        ]
        first = json.dumps(summarize(records, directory, monthly_goal=5000), ensure_ascii=False)
        second = json.dumps(summarize(records, directory, monthly_goal=5000), ensure_ascii=False)
        assert first == second
