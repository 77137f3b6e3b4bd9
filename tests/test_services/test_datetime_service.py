"""Tests for datetime helpers."""

from datetime import datetime, timedelta, timezone

from labfiles.services.datetime_service import (
    ensure_utc,
    format_iso,
    from_timestamp,
    now_utc,
    parse_datetime,
)


class TestDatetimeParsing:
    def test_parse_full_format(self) -> None:
        result = parse_datetime("2026-02-02 22:21:29.975359+00")
        assert result.year == 2026
        assert result.month == 2
        assert result.hour == 22
        assert result.minute == 21

    def test_parse_iso_with_z(self) -> None:
        result = parse_datetime("2026-02-02T10:00:00Z")
        assert result == datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc)

    def test_parse_date_only(self) -> None:
        result = parse_datetime("2026-02-02")
        assert (result.year, result.month, result.day, result.hour) == (2026, 2, 2, 0)

    def test_parse_datetime_naive_adds_tz(self) -> None:
        result = parse_datetime(datetime(2026, 1, 1, 12, 0), default_tz="UTC")
        assert result.tzinfo is not None


class TestUtcHelpers:
    def test_now_utc(self) -> None:
        assert now_utc().tzinfo is not None

    def test_ensure_utc_naive(self) -> None:
        result = ensure_utc(datetime(2026, 1, 1, 12, 0))
        assert result == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offset(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2026, 1, 1, 12, 0, tzinfo=plus_two))
        assert result.hour == 10
        assert result.utcoffset() == timedelta(0)

    def test_from_timestamp(self) -> None:
        assert from_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_format_iso(self) -> None:
        dt = datetime(2026, 2, 2, 22, 21, 29, tzinfo=timezone.utc)
        assert format_iso(dt) == "2026-02-02T22:21:29+00:00"
