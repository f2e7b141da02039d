from datetime import UTC, datetime, timedelta, timezone

from backend.app.core.time import ensure_utc, naive_utc, utc_now


def test_utc_now_is_timezone_aware_utc():
    value = utc_now()
    assert value.tzinfo is UTC


def test_ensure_utc_treats_naive_values_as_utc():
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2024, 1, 1, 8)) == datetime(2024, 1, 1, 8, tzinfo=UTC)
    shifted = ensure_utc(datetime(2024, 1, 1, 8, tzinfo=timezone(timedelta(hours=-6))))
    assert shifted.tzinfo is UTC
    assert shifted.hour == 14


def test_naive_utc_strips_offset_after_conversion():
    value = naive_utc(datetime(2024, 1, 1, 8, tzinfo=timezone(timedelta(hours=-6))))
    assert value == datetime(2024, 1, 1, 14)
    assert naive_utc(datetime(2024, 1, 1, 8)) == datetime(2024, 1, 1, 8)
