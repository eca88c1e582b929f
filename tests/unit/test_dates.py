"""Unit tests for event date normalization."""

from datetime import date, timedelta

import pytest

from eventscout.models import DateConfidence
from eventscout.utils.dates import days_from_today, is_iso_day, is_plausible_year, parse_event_date, to_iso_day


class TestParseEventDate:
    """Tests for parse_event_date."""

    def test_iso_day(self):
        result = parse_event_date("2027-03-12")
        assert result.start_iso == "2027-03-12"
        assert result.end_iso == "2027-03-12"
        assert result.confidence == DateConfidence.HIGH

    def test_iso_datetime(self):
        assert parse_event_date("2027-03-12T09:00:00Z").start_iso == "2027-03-12"

    def test_iso_range(self):
        result = parse_event_date("2027-03-12 - 2027-03-14")
        assert (result.start_iso, result.end_iso) == ("2027-03-12", "2027-03-14")

    def test_day_range(self):
        result = parse_event_date("12-14 March 2027")
        assert (result.start_iso, result.end_iso) == ("2027-03-12", "2027-03-14")
        assert result.confidence == DateConfidence.HIGH

    def test_german_day_range(self):
        result = parse_event_date("12. - 14. Mai 2027")
        assert (result.start_iso, result.end_iso) == ("2027-05-12", "2027-05-14")

    def test_month_day_range(self):
        result = parse_event_date("March 12-14, 2027")
        assert (result.start_iso, result.end_iso) == ("2027-03-12", "2027-03-14")

    def test_single_day_text(self):
        result = parse_event_date("March 12, 2027")
        assert result.start_iso == "2027-03-12"
        assert result.confidence == DateConfidence.HIGH

    def test_fuzzy_text_is_low_confidence(self):
        result = parse_event_date("Join us on March 12, 2027 in Berlin")
        assert result.start_iso == "2027-03-12"
        assert result.confidence == DateConfidence.LOW

    @pytest.mark.parametrize("raw", [None, "", "   ", "no date at all", "2027-13-45"])
    def test_unparseable(self, raw):
        result = parse_event_date(raw)
        assert result.start_iso is None
        assert result.confidence is None

    def test_implausible_year(self):
        assert parse_event_date("1999-05-01").start_iso is None


class TestHelpers:
    """Tests for the small date helpers."""

    def test_to_iso_day(self):
        assert to_iso_day("14 March 2027") == "2027-03-14"
        assert to_iso_day(None) is None

    @pytest.mark.parametrize("value,expected", [
        ("2027-03-12", True),
        ("2027-02-30", False),
        ("12.03.2027", False),
        (None, False),
    ])
    def test_is_iso_day(self, value, expected):
        assert is_iso_day(value) is expected

    def test_plausible_year(self):
        today = date(2026, 10, 17)
        assert is_plausible_year(2020, today)
        assert is_plausible_year(2031, today)
        assert not is_plausible_year(2019, today)
        assert not is_plausible_year(2032, today)

    def test_days_from_today(self):
        future = (date.today() + timedelta(days=10)).isoformat()
        assert days_from_today(future) == 10
