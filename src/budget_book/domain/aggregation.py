"""Monthly and per-category sums over a transaction record set.

Every function here is pure: the same inputs always give the same output and
nothing is mutated. Amounts are summed as ``Decimal`` so long runs of small
values do not drift.
"""
from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import datetime, time
from decimal import Decimal

from budget_book.domain.timefmt import to_local_naive
from budget_book.logger import get_logger
from budget_book.models import (
    Category,
    CategoryStat,
    MonthlySummary,
    Transaction,
    TransactionType,
)

logger = get_logger(__name__)

UNKNOWN_CATEGORY = "Unknown"

_ZERO = Decimal("0")


def month_range(year: int, month: int) -> tuple[datetime, datetime]:
    """Return the first and last instant of a calendar month (naive local time)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be within 1..12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime.combine(datetime(year, month, last_day).date(), time.max)
    return start, end


def in_range(transaction: Transaction, start: datetime, end: datetime) -> bool:
    when = to_local_naive(transaction.date)
    return to_local_naive(start) <= when <= to_local_naive(end)


def filter_by_range(
    records: Iterable[Transaction],
    start: datetime,
    end: datetime,
) -> list[Transaction]:
    return [tx for tx in records if in_range(tx, start, end)]


def summarize(records: Iterable[Transaction]) -> MonthlySummary:
    income = _ZERO
    expense = _ZERO
    for tx in records:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        elif tx.type == TransactionType.EXPENSE:
            expense += tx.amount
    return MonthlySummary(income=income, expense=expense, balance=income - expense)


def monthly_summary(records: Iterable[Transaction], year: int, month: int) -> MonthlySummary:
    """Income, expense and balance for one calendar month.

    Reporting query: any failure degrades to an all-zero summary instead of
    raising.
    """
    try:
        start, end = month_range(year, month)
        return summarize(filter_by_range(records, start, end))
    except Exception as exc:
        logger.error("[STATS] Monthly summary for %s-%s failed: %s", year, month, exc)
        return MonthlySummary()


def category_stats(
    records: Iterable[Transaction],
    categories: Iterable[Category],
    start_date: datetime,
    end_date: datetime,
) -> list[CategoryStat]:
    """Per-category totals within ``[start_date, end_date]``, largest first.

    Groups by ``category_id`` and keeps the type of the first record seen in
    each group. Categories that no longer exist are reported as "Unknown".
    Equal totals keep the order in which their groups were first encountered.
    """
    names = {category.id: category.name for category in categories}
    groups: dict[str, CategoryStat] = {}

    for tx in filter_by_range(records, start_date, end_date):
        stat = groups.get(tx.category_id)
        if stat is None:
            stat = CategoryStat(
                category_id=tx.category_id,
                category_name=names.get(tx.category_id, UNKNOWN_CATEGORY),
                type=tx.type,
                total=_ZERO,
            )
            groups[tx.category_id] = stat
        stat.total += tx.amount

    # sorted() is stable
    return sorted(groups.values(), key=lambda stat: stat.total, reverse=True)
