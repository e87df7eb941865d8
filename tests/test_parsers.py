"""Tests for Monday column value parsers."""

from datetime import datetime

from models.deal_models import Attribute
from salespulse.parsers import (
    ParseStatus,
    has_linked_scope,
    parse_category,
    parse_linked_ids,
    parse_money,
    parse_person_reference,
    parse_signed_date,
)


class TestParseMoney:
    def test_plain_number(self):
        assert parse_money(Attribute(text="15000")) == 15000.0

    def test_currency_formatting_is_stripped(self):
        assert parse_money(Attribute(text="$15,000.50")) == 15000.5

    def test_missing_or_blank_is_zero(self):
        assert parse_money(Attribute()) == 0.0
        assert parse_money(Attribute(text="")) == 0.0

    def test_non_numeric_is_zero(self):
        assert parse_money(Attribute(text="TBD")) == 0.0
        assert parse_money(Attribute(text="1.2.3")) == 0.0

    def test_negative_collapses_to_zero(self):
        assert parse_money(Attribute(text="-2500")) == 0.0

    def test_scientific_notation(self):
        assert parse_money(Attribute(text="1e5")) == 100000.0
        assert parse_money(Attribute(text=" 2.5E3 ")) == 2500.0

    def test_nan_and_infinity_are_zero(self):
        assert parse_money(Attribute(text="nan")) == 0.0
        assert parse_money(Attribute(text="inf")) == 0.0


class TestParseSignedDate:
    def test_date_only(self):
        assert parse_signed_date(Attribute(text="2026-10-14")) == datetime(2026, 10, 14)

    def test_date_with_time(self):
        assert parse_signed_date(Attribute(text="2026-10-14 09:30")) == datetime(2026, 10, 14, 9, 30)

    def test_empty_or_invalid_is_none(self):
        assert parse_signed_date(Attribute()) is None
        assert parse_signed_date(Attribute(text="   ")) is None
        assert parse_signed_date(Attribute(text="next tuesday")) is None


class TestParsePersonReference:
    def test_first_person_id(self):
        attr = Attribute(raw_value='{"personsAndTeams": [{"id": 42, "kind": "person"}, {"id": 7, "kind": "person"}]}')
        result = parse_person_reference(attr)
        assert result.status is ParseStatus.OK
        assert result.value == "42"

    def test_team_entry_is_absent(self):
        attr = Attribute(raw_value='{"personsAndTeams": [{"id": 9, "kind": "team"}]}')
        assert parse_person_reference(attr).status is ParseStatus.ABSENT

    def test_missing_value_is_absent(self):
        assert parse_person_reference(Attribute(text="Jane Doe")).status is ParseStatus.ABSENT

    def test_bad_json_is_malformed_and_collapses(self):
        result = parse_person_reference(Attribute(raw_value="{not json"))
        assert result.status is ParseStatus.MALFORMED
        assert result.value_or(None) is None

    def test_non_object_is_malformed(self):
        assert parse_person_reference(Attribute(raw_value="[1, 2]")).status is ParseStatus.MALFORMED


class TestLinkedScope:
    def test_linked_ids(self):
        attr = Attribute(raw_value='{"linkedPulseIds": [{"linkedPulseId": 555}, {"linkedPulseId": 556}]}')
        assert parse_linked_ids(attr).value == ["555", "556"]

    def test_malformed_collapses_to_empty(self):
        assert parse_linked_ids(Attribute(raw_value="oops")).value_or([]) == []

    def test_text_only_counts(self):
        assert has_linked_scope(Attribute(text="Scope #12")) is True

    def test_ids_only_count(self):
        attr = Attribute(text="", raw_value='{"linkedPulseIds": [{"linkedPulseId": 1}]}')
        assert has_linked_scope(attr) is True

    def test_neither_signal(self):
        attr = Attribute(text="  ", raw_value='{"linkedPulseIds": []}')
        assert has_linked_scope(attr) is False


class TestParseCategory:
    def test_passthrough(self):
        assert parse_category(Attribute(text="AE Sourced")) == "AE Sourced"

    def test_blank(self):
        assert parse_category(Attribute()) == ""
