"""If-Modified-Since evaluation against catalog timestamps.

Timestamps travel in the emulator's fixed wire format
``ddd, dd MM yyyy HH:mm:ss GMT`` where ``MM`` is the numeric month, e.g.
``Tue, 05 03 2024 10:15:00 GMT``. ``Last-Modified`` is emitted in the same
format, so a browser echoing it back in ``If-Modified-Since`` round-trips.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

NOT_MODIFIED_TOLERANCE = timedelta(milliseconds=1000)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def format_timestamp(value: datetime) -> str:
    # Weekday is spelled out here so the output does not depend on the locale.
    value = _as_utc_naive(value)
    return f"{_WEEKDAYS[value.weekday()]}, " + value.strftime(
        "%d %m %Y %H:%M:%S GMT"
    )


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a wire timestamp; anything unparseable yields ``None``."""
    if not value:
        return None
    text = value.strip()
    weekday, sep, rest = text.partition(", ")
    if not sep or weekday not in _WEEKDAYS:
        return None
    try:
        return datetime.strptime(rest, "%d %m %Y %H:%M:%S GMT")
    except ValueError:
        return None


def is_not_modified(if_modified_since: str | None, last_modified: datetime) -> bool:
    """Return True when the client copy matches ``last_modified``.

    The match tolerates up to one second either way because the wire format
    drops sub-second precision.
    """
    client_timestamp = parse_timestamp(if_modified_since)
    if client_timestamp is None:
        return False
    return abs(_as_utc_naive(last_modified) - client_timestamp) <= (
        NOT_MODIFIED_TOLERANCE
    )
