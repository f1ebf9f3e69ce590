"""CSV interchange format for transactions.

File layout (UTF-8 with a leading byte-order mark)::

    날짜,유형,카테고리,금액,메모
    "2024. 3. 5.","수입","급여",50000,""
    "2024. 3. 10.","지출","식비",12000,"He said ""hi"" twice"

Date, type, category and note are always quoted; the amount never is. The
only escape is doubling ``"`` inside the note. Amounts must fit the remote
``DECIMAL(15, 2)`` column.
"""
from __future__ import annotations

import csv
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from budget_book.domain.aggregation import UNKNOWN_CATEGORY
from budget_book.domain.timefmt import (
    format_compact_date,
    format_korean_date,
    parse_ymd,
    to_local_naive,
)
from budget_book.logger import get_logger
from budget_book.models import Category, Transaction, TransactionType, amount_fits_column

logger = get_logger(__name__)

BOM = "\ufeff"
CSV_HEADER = "날짜,유형,카테고리,금액,메모"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
MIN_FIELDS = 4

TYPE_LABELS: dict[TransactionType, str] = {
    TransactionType.INCOME: "수입",
    TransactionType.EXPENSE: "지출",
}
_LABEL_TYPES = {label: tx_type for tx_type, label in TYPE_LABELS.items()}


@dataclass(frozen=True)
class CsvRowIssue:
    line_number: int
    line: str
    reason: str


@dataclass
class CsvImportResult:
    transactions: list[Transaction] = field(default_factory=list)
    skipped: list[CsvRowIssue] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


class _SkipRow(Exception):
    pass


# ── Export ────────────────────────────────────────────────────────────────────

def wrap(value: str) -> str:
    return f'"{value}"'


def quote(value: str) -> str:
    """Wrap in quotes, doubling any embedded ``"``."""
    return wrap(value.replace('"', '""'))


def format_amount(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return format(amount.to_integral_value(), "f")
    return format(amount.normalize(), "f")


def serialize_row(transaction: Transaction, category_names: dict[str, str]) -> str:
    category_name = category_names.get(transaction.category_id, UNKNOWN_CATEGORY)
    return ",".join((
        wrap(format_korean_date(to_local_naive(transaction.date))),
        wrap(TYPE_LABELS[transaction.type]),
        wrap(category_name),
        format_amount(transaction.amount),
        quote(transaction.note or ""),
    ))


def serialize(records: Iterable[Transaction], categories: Iterable[Category]) -> str:
    """Render transactions as CSV text (no byte-order mark)."""
    category_names = {category.id: category.name for category in categories}
    rows = [serialize_row(tx, category_names) for tx in records]
    return CSV_HEADER + "\n" + "\n".join(rows)


def with_bom(text: str) -> str:
    return text if text.startswith(BOM) else BOM + text


def encode_csv(text: str) -> bytes:
    """Bytes ready to be written to a file or streamed to a client."""
    return with_bom(text).encode("utf-8")


def export_filename(now: datetime | None = None) -> str:
    return f"가계부_{format_compact_date(now or datetime.now())}.csv"


# ── Import ────────────────────────────────────────────────────────────────────

def tokenize_line(line: str) -> list[str]:
    """Split one line into fields.

    A field is a double-quoted run (commas allowed, ``""`` is a literal quote)
    or an unquoted run of non-comma characters.
    """
    return next(csv.reader([line], skipinitialspace=True), [])


def _clean_token(token: str) -> str:
    # The reader already removed the surrounding quotes and undoubled ""
    return token.strip()


def parse_type_label(label: str, *, strict: bool = False) -> TransactionType | None:
    """Map a localized label to a type.

    Unrecognized labels become EXPENSE unless ``strict`` is set, in which case
    None is returned and the row is rejected.
    """
    tx_type = _LABEL_TYPES.get(label)
    if tx_type is not None:
        return tx_type
    return None if strict else TransactionType.EXPENSE


def parse_amount(raw: str) -> Decimal | None:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return None
    if not amount_fits_column(amount):
        return None
    return amount


def parse_csv_date(raw: str, now: datetime) -> datetime:
    """Day-precision date from the CSV; unparseable values fall back to ``now``."""
    parsed = parse_ymd(raw)
    if parsed is None:
        logger.debug("[CSV] Unparseable date '%s', using current time.", raw)
        return now
    return datetime(parsed.year, parsed.month, parsed.day)


def generate_import_id(now: datetime) -> str:
    return f"imported_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def _parse_row(
    line: str,
    category_index: dict[tuple[str, TransactionType], Category],
    *,
    strict_type_labels: bool,
    now: datetime,
) -> Transaction:
    try:
        tokens = tokenize_line(line)
    except csv.Error as exc:
        raise _SkipRow(f"malformed line: {exc}") from exc
    if len(tokens) < MIN_FIELDS:
        raise _SkipRow(f"expected at least {MIN_FIELDS} fields, got {len(tokens)}")

    date_str, type_str, category_str, amount_str = (_clean_token(t) for t in tokens[:4])
    note_str = _clean_token(tokens[4]) if len(tokens) > 4 else ""

    tx_type = parse_type_label(type_str, strict=strict_type_labels)
    if tx_type is None:
        raise _SkipRow(f"unknown type label '{type_str}'")

    category = category_index.get((category_str, tx_type))
    if category is None:
        raise _SkipRow(f"category not found: '{category_str}' ({tx_type.value})")

    amount = parse_amount(amount_str)
    if amount is None:
        raise _SkipRow(f"invalid amount '{amount_str}'")
    if amount < 0:
        raise _SkipRow(f"negative amount '{amount_str}'")

    return Transaction(
        id=generate_import_id(now),
        category_id=category.id,
        amount=amount,
        type=tx_type,
        date=parse_csv_date(date_str, now),
        note=note_str or None,
        created_at=now,
    )


def deserialize(
    text: str,
    categories: Iterable[Category],
    *,
    strict_type_labels: bool = False,
    now: datetime | None = None,
) -> CsvImportResult:
    """Parse CSV text into candidate transactions.

    The first non-blank line is treated as the header. Each remaining line is
    parsed on its own; a bad line is recorded in ``skipped`` and never aborts
    the batch.
    """
    now = now or datetime.now()
    content = text[len(BOM):] if text.startswith(BOM) else text
    category_index: dict[tuple[str, TransactionType], Category] = {}
    for category in categories:
        category_index.setdefault((category.name, category.type), category)

    numbered = [
        (number, line.rstrip("\r"))
        for number, line in enumerate(content.split("\n"), start=1)
        if line.strip()
    ]

    result = CsvImportResult()
    for line_number, line in numbered[1:]:
        try:
            transaction = _parse_row(
                line,
                category_index,
                strict_type_labels=strict_type_labels,
                now=now,
            )
        except _SkipRow as exc:
            reason = str(exc)
        except Exception as exc:
            reason = f"failed to parse line: {exc}"
        else:
            result.transactions.append(transaction)
            continue

        logger.warning("[CSV] Skipping line %s (%s): %s", line_number, reason, line)
        result.skipped.append(CsvRowIssue(line_number=line_number, line=line, reason=reason))

    logger.info(
        "[CSV] Parsed %d transactions, skipped %d lines.",
        len(result.transactions),
        result.skipped_count,
    )
    return result
