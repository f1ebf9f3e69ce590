import re
from datetime import date, datetime

_DATE_SEPARATORS = re.compile(r"[.\-/]")


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def format_korean_date(value: datetime | date) -> str:
    # Same shape as toLocaleDateString("ko-KR"): "2024. 3. 5."
    return f"{value.year}. {value.month}. {value.day}."


def parse_ymd(value: str) -> date | None:
    """Parse ``YYYY.MM.DD``, ``YYYY-MM-DD`` or ``YYYY/MM/DD`` (plus the Korean
    locale form with spaces and a trailing dot). Returns None for anything else."""
    cleaned = value.strip()
    if cleaned.endswith("."):
        cleaned = cleaned[:-1]
    parts = [part.strip() for part in _DATE_SEPARATORS.split(cleaned)]
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    year, month, day = (int(part) for part in parts)
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_compact_date(value: datetime | date) -> str:
    return f"{value.year:04d}{value.month:02d}{value.day:02d}"
