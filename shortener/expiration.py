from datetime import datetime, timedelta, timezone
from typing import Optional

MIN_EXPIRATION_MS = 1000
MAX_EXPIRATION_MS = 2 * 365 * 24 * 60 * 60 * 1000  # 2 years

_DAYS_PER_YEAR = 365
_DAYS_PER_MONTH = 30


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops the offset on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_expiration(requested_ms: Optional[int]) -> bool:
    if requested_ms is None:
        return True
    return MIN_EXPIRATION_MS <= requested_ms <= MAX_EXPIRATION_MS


def compute_expiry_timestamp(requested_ms: int, now: Optional[datetime] = None) -> datetime:
    if requested_ms <= 0:
        raise ValueError("requested_ms must be a positive number of milliseconds")
    return (now or utc_now()) + timedelta(milliseconds=requested_ms)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return False
    return ensure_utc(expires_at) <= (now or utc_now())


def format_duration(duration: timedelta) -> str:
    """Render a duration as e.g. ``"1y 2mo 3d 4h 5m 6s"``.

    Years and months are fixed 365- and 30-day blocks. Zero-valued units are
    left out; seconds are always shown when nothing else is.
    """
    days = duration.days
    hours, remainder = divmod(duration.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days >= _DAYS_PER_YEAR:
        parts.append(f"{days // _DAYS_PER_YEAR}y")
        days %= _DAYS_PER_YEAR
    if days >= _DAYS_PER_MONTH:
        parts.append(f"{days // _DAYS_PER_MONTH}mo")
        days %= _DAYS_PER_MONTH
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")

    return " ".join(parts)
