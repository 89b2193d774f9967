from __future__ import annotations

import datetime as dt


def now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat(timespec="microseconds")


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def normalize_timestamp(value: str | None) -> str:
    """Return ``value`` as an ISO-8601 UTC string; ``None`` means now.

    Queue ordering compares timestamps as strings, so every stored value
    shares one format and one offset.
    """
    if value is None:
        return now_iso()
    parsed = parse_iso8601(value)
    if parsed is None:
        raise ValueError(f"invalid ISO-8601 timestamp: {value!r}")
    return parsed.isoformat(timespec="microseconds")


def date_part(timestamp: str) -> str:
    return timestamp.split("T", 1)[0]


def local_date(value: str | None) -> str:
    """Calendar date of ``value`` in the offset it was written with.

    Daily scan counts follow the scanner's wall clock, not UTC.
    """
    if value is None:
        return date_part(now_iso())
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return dt.datetime.fromisoformat(raw).date().isoformat()
    except ValueError as exc:
        raise ValueError(f"invalid ISO-8601 timestamp: {value!r}") from exc
