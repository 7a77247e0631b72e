"""
Tests for argument normalization: casing, ranges, local dates, booleans and idempotence.
"""

import os
import time
from datetime import date

import pytest

from src.agents.normalizer import (
    REMOVE,
    PriceRange,
    coerce_boolean,
    match_enum,
    normalize_arguments,
    normalize_value,
    parse_local_date,
    parse_price_filter,
    title_case,
)


class TestCasing:

    def test_title_case_fields(self):
        assert normalize_value("city", "new YORK") == "New York"
        assert normalize_value("author", "stephen king") == "Stephen King"
        assert normalize_value("staffName", "  MARY   jones ") == "Mary Jones"

    def test_title_case_helper(self):
        assert title_case("o'brien") == "O'brien"
        assert title_case("") == ""

    def test_state_is_upper_cased(self):
        assert normalize_value("state", "al") == "AL"
        assert normalize_value("state", " Ga ") == "GA"

    def test_email_is_lower_cased(self):
        assert normalize_value("email", " Jane.Doe@Example.COM ") == "jane.doe@example.com"

    def test_identifiers_are_only_trimmed(self):
        assert normalize_value("identifier", "  john smith ") == "john smith"

    def test_unlisted_fields_pass_through(self):
        assert normalize_value("notes", "Call back MONDAY") == "Call back MONDAY"


class TestEnums:

    @pytest.mark.parametrize("field,raw,expected", [
        ("category", "customer", "Customer"),
        ("status", "SUBMITTED", "Submitted"),
        ("role", "Master Admin", "master-admin"),
        ("target", "expense reports", "expenseReports"),
        ("metric", "Top Selling", "top-selling"),
        ("type", "meeting", "Meeting"),
    ])
    def test_case_insensitive_match(self, field, raw, expected):
        assert normalize_value(field, raw) == expected

    def test_unknown_value_passes_through(self):
        assert normalize_value("category", "Client") == "Client"
        assert match_enum("widgets", ["books"]) == "widgets"

    def test_list_of_categories(self):
        assert normalize_value("category", ["customer", "VENDOR"]) == ["Customer", "Vendor"]


class TestPriceFilter:

    def test_less_than(self):
        price_range = parse_price_filter("<15")
        assert price_range == PriceRange(max=15, max_inclusive=False)
        assert price_range.contains(14.99)
        assert not price_range.contains(15)

    def test_greater_than_with_dollar_sign_and_spaces(self):
        price_range = parse_price_filter("> $20.00")
        assert price_range.min == 20
        assert not price_range.min_inclusive
        assert price_range.contains(20.01)
        assert not price_range.contains(20)

    def test_between_is_inclusive(self):
        price_range = parse_price_filter("10-25")
        assert price_range == PriceRange(min=10, max=25)
        assert price_range.contains(10)
        assert price_range.contains(25)
        assert not price_range.contains(25.01)

    def test_mapping_with_min_and_max(self):
        assert parse_price_filter({"min": "5", "max": None}) == PriceRange(min=5)

    @pytest.mark.parametrize("raw", ["abc", "25-10", "<", "cheap", "10-", ""])
    def test_malformed_input_is_unchanged(self, raw):
        assert parse_price_filter(raw) == raw

    def test_non_numeric_records_never_match(self):
        price_range = PriceRange(min=1)
        assert not price_range.contains("12")
        assert not price_range.contains(None)
        assert not price_range.contains(True)

    @pytest.mark.parametrize("raw", ["<15", ">20", "10-25", "0.5-2.75"])
    def test_filter_string_round_trip(self, raw):
        assert parse_price_filter(raw).to_filter_string() == raw

    def test_to_dict(self):
        assert parse_price_filter("<15").to_dict() == {
            "min": None, "max": 15, "minInclusive": True, "maxInclusive": False
        }

    def test_to_dict_distinguishes_open_and_closed_bounds(self):
        strict = parse_price_filter("<15")
        closed = parse_price_filter({"max": 15})
        assert strict.to_dict() != closed.to_dict()
        assert not strict.contains(15)
        assert closed.contains(15)

    @pytest.mark.parametrize("raw", ["<15", ">20", "10-25"])
    def test_serialized_range_parses_back_unchanged(self, raw):
        price_range = parse_price_filter(raw)
        assert parse_price_filter(price_range.to_dict()) == price_range


class TestLocalDates:

    def test_parses_calendar_date(self):
        assert parse_local_date("2024-03-15") == date(2024, 3, 15)

    def test_invalid_dates_pass_through(self):
        assert parse_local_date("2024-02-30") == "2024-02-30"
        assert parse_local_date("March 15") == "March 15"

    @pytest.mark.skipif(not hasattr(time, "tzset"), reason="time.tzset is not available on this platform")
    @pytest.mark.parametrize("tz", ["UTC", "America/Chicago", "Pacific/Kiritimati", "Pacific/Pago_Pago"])
    def test_date_does_not_shift_with_host_timezone(self, tz, monkeypatch):
        monkeypatch.setenv("TZ", tz)
        time.tzset()
        try:
            assert normalize_value("startDate", "2024-01-01") == date(2024, 1, 1)
            assert normalize_value("date", "2024-12-31") == date(2024, 12, 31)
        finally:
            monkeypatch.undo()
            time.tzset()


class TestBooleans:

    def test_literal_strings(self):
        assert coerce_boolean("true") is True
        assert coerce_boolean("false") is False
        assert coerce_boolean(False) is False

    @pytest.mark.parametrize("raw", ["yes", "1", "TRUE?", "maybe", 1])
    def test_anything_else_is_removed(self, raw):
        assert coerce_boolean(raw) is REMOVE

    def test_boolean_filter_is_dropped_from_arguments(self):
        assert normalize_arguments({"sendTNSBNewsletter": "maybe", "state": "al"}) == {"state": "AL"}


class TestNormalizeArguments:

    def test_empty_values_are_removed(self):
        assert normalize_arguments({"city": "", "state": None, "zip": "36602"}) == {"zip": "36602"}

    def test_numbers_are_coerced(self):
        result = normalize_arguments({"price": "$18.99", "stock": "4", "publicationYear": 1965.0})
        assert result == {"price": 18.99, "stock": 4, "publicationYear": 1965}

    def test_unparseable_numbers_pass_through(self):
        assert normalize_arguments({"price": "a lot"}) == {"price": "a lot"}

    def test_nested_mappings_are_normalized(self):
        result = normalize_arguments({"filters": {"state": "al", "priceFilter": "<15"}})
        assert result == {"filters": {"state": "AL", "priceFilter": PriceRange(max=15, max_inclusive=False)}}

    def test_list_of_items(self):
        result = normalize_arguments({"items": [{"cashAmount": "42.50", "itemDate": "2024-02-01"}, None]})
        assert result == {"items": [{"cashAmount": 42.5, "itemDate": date(2024, 2, 1)}]}

    def test_idempotent(self):
        raw = {
            "firstName": "jOHN", "state": "al", "email": "J@X.COM", "category": ["customer", "Client"],
            "priceFilter": "10-25", "amountFilter": "junk", "startDate": "2024-01-01", "endDate": "soon",
            "sendTNSBNewsletter": "true", "inStock": "nope", "stock": "3", "price": "9.5",
            "status": "draft", "target": "Books", "notes": "  keep  ",
            "filters": {"city": "mobile", "priceFilter": ">5"},
        }
        once = normalize_arguments(raw)
        assert normalize_arguments(once) == once
        assert "inStock" not in once
        assert once["amountFilter"] == "junk"
        assert once["endDate"] == "soon"
