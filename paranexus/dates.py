from __future__ import annotations

from datetime import date, datetime, timedelta


DATE_KEY_FORMAT = "%Y-%m-%d"


def _today() -> date:
    # date.today() is local time, never UTC.
    return date.today()


def date_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def today_key() -> str:
    return date_key(_today())


def offset_key(days: int, *, start: date | None = None) -> str:
    base = start or _today()
    return date_key(base + timedelta(days=days))


def parse_date_key(value: str | None) -> date | None:
    if not value:
        return None
    raw = value.strip()
    try:
        return datetime.strptime(raw, DATE_KEY_FORMAT).date()
    except ValueError:
        return None


def is_date_key(value: str | None) -> bool:
    parsed = parse_date_key(value)
    return parsed is not None and date_key(parsed) == (value or "").strip()


def next_day_keys(count: int, *, start: date | None = None) -> list[str]:
    base = start or _today()
    return [date_key(base + timedelta(days=idx)) for idx in range(max(0, count))]


def resolve_date_input(value: str, *, today: date | None = None) -> str | None:
    """Accept `today`, `tomorrow`, `yesterday`, `+N`/`-N` day offsets, or a date key."""

    base = today or _today()
    raw = " ".join((value or "").split()).strip().lower()
    if not raw or raw == "today":
        return date_key(base)
    if raw == "tomorrow":
        return date_key(base + timedelta(days=1))
    if raw == "yesterday":
        return date_key(base - timedelta(days=1))
    if raw[0] in "+-" and raw[1:].isdigit():
        try:
            return date_key(base + timedelta(days=int(raw)))
        except (OverflowError, ValueError):
            return None
    if is_date_key(raw):
        return raw
    return None
