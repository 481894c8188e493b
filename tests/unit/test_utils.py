"""Tests for datetime helpers."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from league.utils import ensure_utc, parse_datetime, to_db_datetime, utc_now


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(datetime(2024, 3, 1, 12)) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


def test_ensure_utc_converts_offsets():
    value = datetime(2024, 3, 1, 12, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(value).hour == 10
    assert ensure_utc(value).tzinfo == timezone.utc


def test_to_db_datetime_is_naive_utc():
    value = datetime(2024, 7, 1, 12, tzinfo=ZoneInfo("Europe/Amsterdam"))
    assert to_db_datetime(value) == datetime(2024, 7, 1, 10)


class TestParseDatetime:
    def test_zulu_suffix(self):
        assert parse_datetime("2024-03-01T18:30:00Z") == datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc)

    def test_date_only_gets_zone(self):
        tz = ZoneInfo("Europe/Amsterdam")
        assert parse_datetime("2024-03-01", tz) == datetime(2024, 3, 1, tzinfo=tz)

    def test_naive_without_zone(self):
        assert parse_datetime("2024-03-01T08:00").tzinfo is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("yesterday")
