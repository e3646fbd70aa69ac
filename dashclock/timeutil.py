from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def round_to_second(dt: datetime) -> datetime:
    # Half rounds up, so 12:00:00.5 becomes 12:00:01.
    floored = dt.replace(microsecond=0)
    if dt.microsecond >= 500_000:
        return floored + timedelta(seconds=1)
    return floored


def load_timezone(name: str) -> ZoneInfo:
    n = name.strip()
    if not n:
        raise ConfigError("Timezone name is empty.")
    try:
        return ZoneInfo(n)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ConfigError(f"Unknown timezone: {name}") from e


def hhmm(dt: datetime, tz: ZoneInfo) -> str:
    return dt.astimezone(tz).strftime("%H:%M")
