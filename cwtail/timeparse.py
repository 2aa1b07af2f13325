"""Parsing of the --start / --end style time arguments."""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_RELATIVE = re.compile(r"^-?(\d+)([smhdw])$")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_time(value: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Accepts "now", a duration ago ("90s", "10m", "2h", "1d", "-1w"), epoch
    millis, or an ISO-8601 datetime (naive means UTC). Empty -> None.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    now = _ensure_utc(now or datetime.now(timezone.utc))
    if text == "now":
        return now
    match = _RELATIVE.match(text)
    if match:
        amount, unit = match.groups()
        return now - timedelta(**{_UNITS[unit]: int(amount)})
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"unrecognised time: {value!r}") from None


def to_millis(value: Optional[datetime]) -> Optional[int]:
    """Epoch milliseconds, truncated to the whole second."""
    if value is None:
        return None
    return int(_ensure_utc(value).timestamp()) * 1000
