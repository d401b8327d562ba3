"""Tests for date conversion between caller formats and the wire format."""

import pytest

from filemaker_client.dates import (
    convert,
    convert_search_criteria,
    from_wire,
    sanitize_date_search_string,
    to_wire,
)
from filemaker_client.errors import DateFormatError


class TestConvert:
    def test_reformat(self) -> None:
        assert convert("2020-12-24", "%Y-%m-%d", "%m/%d/%Y") == "12/24/2020"

    def test_passthrough(self) -> None:
        assert convert("", "%Y-%m-%d", "%m/%d/%Y") == ""
        assert convert(None, "%Y-%m-%d", "%m/%d/%Y") is None
        assert convert("whatever", None, "%m/%d/%Y") == "whatever"

    def test_mismatch_raises(self) -> None:
        with pytest.raises(DateFormatError):
            convert("24.12.2020", "%Y-%m-%d", "%m/%d/%Y")

    def test_date_format_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            convert("nope", "%Y", "%Y")


class TestWire:
    def test_date_round_trip(self) -> None:
        assert to_wire("24.12.2020", "date", "%d.%m.%Y") == "12/24/2020"
        assert from_wire("12/24/2020", "date", "%d.%m.%Y") == "24.12.2020"

    def test_timestamp_keeps_time(self) -> None:
        assert to_wire("24.12.2020 08:30:00", "timestamp", "%d.%m.%Y") == "12/24/2020 08:30:00"
        assert from_wire("12/24/2020 08:30:00", "timestamp", "%d.%m.%Y") == "24.12.2020 08:30:00"

    def test_other_types_untouched(self) -> None:
        assert to_wire("24.12.2020", "text", "%d.%m.%Y") == "24.12.2020"
        assert from_wire("08:30:00", "time", "%d.%m.%Y") == "08:30:00"

    def test_no_format(self) -> None:
        assert to_wire("12/24/2020", "date", None) == "12/24/2020"
        assert from_wire("12/24/2020 08:30:00", "timestamp", None) == "12/24/2020 08:30:00"


class TestSearchCriteria:
    def test_sanitize(self) -> None:
        assert sanitize_date_search_string("==12/24/2020") == "12/24/2020"
        assert sanitize_date_search_string(" ~12/##/2020 ") == "12/*/2020"
        assert sanitize_date_search_string("@@/24/2020") == "*/24/2020"

    def test_plain_date(self) -> None:
        assert convert_search_criteria("2020-12-24", "%Y-%m-%d", "%m/%d/%Y") == "12/24/2020"

    def test_operator_and_wildcard(self) -> None:
        assert convert_search_criteria(">=2016-02-*", "%Y-%m-%d", "%m/%d/%Y") == ">=02/*/2016"

    def test_range(self) -> None:
        result = convert_search_criteria("01.01.2020...31.12.2020", "%d.%m.%Y", "%m/%d/%Y")
        assert result == "01/01/2020...12/31/2020"

    def test_two_digit_year(self) -> None:
        assert convert_search_criteria("24.12.20", "%d.%m.%y", "%m/%d/%Y") == "12/24/2020"

    def test_date_half_of_timestamp_format(self) -> None:
        assert convert_search_criteria("24.12.2020", "%d.%m.%Y %H:%M:%S", "%m/%d/%Y") == "12/24/2020"

    def test_missing_formats_only_sanitize(self) -> None:
        assert convert_search_criteria("=12/24/2020") == "12/24/2020"

    def test_mismatch_raises(self) -> None:
        with pytest.raises(DateFormatError):
            convert_search_criteria("yesterday", "%d.%m.%Y", "%m/%d/%Y")

    def test_unsupported_directive(self) -> None:
        with pytest.raises(DateFormatError):
            convert_search_criteria("Dec 2020", "%b %Y", "%m/%d/%Y")
