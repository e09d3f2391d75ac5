import pytest
from datetime import datetime, timedelta, timezone

from shortener.expiration import (
    MAX_EXPIRATION_MS,
    compute_expiry_timestamp,
    ensure_utc,
    format_duration,
    is_expired,
    is_valid_expiration,
)

def test_max_expiration_is_two_years():
    assert MAX_EXPIRATION_MS == 63_072_000_000

@pytest.mark.parametrize(
    "value, expected",
    [
        (None, True),
        (999, False),
        (1000, True),
        (3_600_000, True),
        (MAX_EXPIRATION_MS, True),
        (MAX_EXPIRATION_MS + 1, False),
        (0, False),
        (-5000, False),
    ],
)
def test_is_valid_expiration(value, expected):
    assert is_valid_expiration(value) is expected

def test_compute_expiry_timestamp_adds_to_now():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert compute_expiry_timestamp(90_000, now) == now + timedelta(seconds=90)

def test_compute_expiry_timestamp_defaults_to_utc_now():
    before = datetime.now(timezone.utc)
    result = compute_expiry_timestamp(1000)
    assert result.tzinfo is not None
    assert before + timedelta(seconds=1) <= result <= datetime.now(timezone.utc) + timedelta(seconds=1)

@pytest.mark.parametrize("value", [0, -1])
def test_compute_expiry_timestamp_rejects_non_positive(value):
    with pytest.raises(ValueError):
        compute_expiry_timestamp(value)

@pytest.mark.parametrize(
    "duration, expected",
    [
        (timedelta(days=1, hours=2, minutes=3, seconds=4), "1d 2h 3m 4s"),
        (timedelta(0), "0s"),
        (timedelta(seconds=45), "45s"),
        (timedelta(hours=2), "2h"),
        (timedelta(days=1, minutes=5), "1d 5m"),
        (timedelta(days=730), "2y"),
        (timedelta(days=400, hours=1), "1y 1mo 5d 1h"),
        (timedelta(seconds=59, milliseconds=900), "59s"),
        (timedelta(milliseconds=300), "0s"),
    ],
)
def test_format_duration(duration, expected):
    assert format_duration(duration) == expected

def test_ensure_utc_handles_naive_and_aware():
    naive = datetime(2024, 5, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    plus_two = timezone(timedelta(hours=2))
    assert ensure_utc(datetime(2024, 5, 1, 14, 0, tzinfo=plus_two)) == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert ensure_utc(None) is None

def test_is_expired_boundary():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert is_expired(None, now) is False
    assert is_expired(now, now) is True
    assert is_expired(now + timedelta(microseconds=1), now) is False
    assert is_expired(now - timedelta(seconds=1), now) is True
