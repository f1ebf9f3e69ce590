from datetime import datetime, time

QUERY_DATE_FORMAT = "%Y-%m-%d"


def parse_query_date(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    if not value:
        return None
    parsed = datetime.strptime(value, QUERY_DATE_FORMAT)
    if end_of_day:
        return datetime.combine(parsed.date(), time.max)
    return parsed


def resolve_date_range(
    start_date: str | None,
    end_date: str | None,
) -> tuple[datetime | None, datetime | None]:
    """Turn ``YYYY-MM-DD`` query values into an inclusive datetime range.

    The end date covers the whole day. Raises ``ValueError`` on bad input.
    """
    start = parse_query_date(start_date)
    end = parse_query_date(end_date, end_of_day=True)
    if start and end and start > end:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")
    return start, end
