import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from budget_book.core import settings
from budget_book.domain import aggregation, csv_codec
from budget_book.domain.csv_codec import CsvRowIssue
from budget_book.logger import get_logger
from budget_book.models import (
    Category,
    CategoryStat,
    MonthlySummary,
    Transaction,
    TransactionType,
    amount_fits_column,
)
from budget_book.storage.base import BudgetStore

logger = get_logger(__name__)


class TransactionValidationError(ValueError):
    pass


class RecordNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class CsvExport:
    text: str
    filename: str
    count: int

    @property
    def content(self) -> bytes:
        return csv_codec.encode_csv(self.text)


@dataclass
class ImportReport:
    imported: list[Transaction] = field(default_factory=list)
    skipped: list[CsvRowIssue] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class LedgerService:
    """Entry point for the presentation layer.

    Pulls records from the store and hands them to the aggregator or the CSV
    codec. Reporting calls never fail; writes propagate ``StorageError``.
    """

    def __init__(self, store: BudgetStore, strict_type_labels: bool | None = None):
        self.store = store
        if strict_type_labels is None:
            strict_type_labels = settings.get_env_bool("CSV_STRICT_TYPE_LABELS", False)
        self.strict_type_labels = strict_type_labels

    async def ensure_default_data(self) -> bool:
        return await self.store.ensure_default_data()

    # ── Statistics ───────────────────────────────────────────────────────────

    async def get_monthly_summary(self, year: int, month: int) -> MonthlySummary:
        try:
            records = await self.store.list_transactions()
        except Exception as exc:
            logger.error("[STATS] Transactions unavailable: %s", exc)
            return MonthlySummary()
        return aggregation.monthly_summary(records, year, month)

    async def get_category_stats(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[CategoryStat]:
        if start_date is None or end_date is None:
            now = datetime.now()
            month_start, month_end = aggregation.month_range(now.year, now.month)
            start_date = start_date or month_start
            end_date = end_date or month_end
        try:
            records = await self.store.list_transactions()
            categories = await self.store.list_categories()
            return aggregation.category_stats(records, categories, start_date, end_date)
        except Exception as exc:
            logger.error("[STATS] Category stats unavailable: %s", exc)
            return []

    # ── CSV ──────────────────────────────────────────────────────────────────

    async def export_to_csv(self, now: datetime | None = None) -> CsvExport:
        transactions = await self.store.list_transactions()
        categories = await self.store.list_categories()
        text = csv_codec.serialize(transactions, categories)
        export = CsvExport(
            text=text,
            filename=csv_codec.export_filename(now),
            count=len(transactions),
        )
        logger.info("[CSV] Export prepared: %s (%d transactions)", export.filename, export.count)
        return export

    async def import_from_csv(self, text: str) -> ImportReport:
        """Parse CSV text and append every valid row to the store.

        Rows are written one at a time. If a write fails, the rows written
        before it stay persisted and the error propagates.
        """
        categories = await self.store.list_categories()
        parsed = csv_codec.deserialize(
            text,
            categories,
            strict_type_labels=self.strict_type_labels,
        )
        report = ImportReport(skipped=list(parsed.skipped))
        for transaction in parsed.transactions:
            try:
                saved = await self.store.save_transaction(transaction)
            except Exception:
                logger.error(
                    "[CSV] Import stopped after %d of %d transactions.",
                    report.imported_count,
                    len(parsed.transactions),
                )
                raise
            report.imported.append(saved)

        logger.info(
            "[CSV] Imported %d transactions, skipped %d lines.",
            report.imported_count,
            report.skipped_count,
        )
        return report

    # ── Transactions ─────────────────────────────────────────────────────────

    async def list_transactions(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Transaction]:
        transactions = await self.store.list_transactions()
        if start_date is None and end_date is None:
            return transactions
        return aggregation.filter_by_range(
            transactions,
            start_date or datetime.min,
            end_date or datetime.max,
        )

    async def get_transaction(self, transaction_id: str) -> Transaction:
        for transaction in await self.store.list_transactions():
            if transaction.id == transaction_id:
                return transaction
        raise RecordNotFoundError(f"Transaction {transaction_id} not found")

    async def _require_category(self, category_id: str | None) -> Category:
        if not category_id:
            raise TransactionValidationError("A category is required.")
        for category in await self.store.list_categories():
            if category.id == category_id:
                return category
        raise TransactionValidationError(f"Category {category_id} does not exist.")

    @staticmethod
    def _require_amount(amount: Decimal | None) -> Decimal:
        if amount is None or not amount.is_finite() or amount <= 0:
            raise TransactionValidationError("Amount must be greater than zero.")
        if not amount_fits_column(amount):
            raise TransactionValidationError(
                "Amount must have at most 13 integer digits and 2 decimal places."
            )
        return amount

    async def add_transaction(
        self,
        *,
        category_id: str,
        amount: Decimal,
        type: TransactionType,
        date: datetime | None = None,
        note: str | None = None,
    ) -> Transaction:
        amount = self._require_amount(amount)
        await self._require_category(category_id)
        now = datetime.now()
        transaction = Transaction(
            id=_new_id("tx"),
            category_id=category_id,
            amount=amount,
            type=type,
            date=date or now,
            note=note or None,
            created_at=now,
        )
        saved = await self.store.save_transaction(transaction)
        logger.info("[LEDGER] Added %s %s (%s)", saved.type.value, saved.amount, saved.id)
        return saved

    async def update_transaction(
        self,
        transaction_id: str,
        *,
        category_id: str | None = None,
        amount: Decimal | None = None,
        type: TransactionType | None = None,
        date: datetime | None = None,
        note: str | None = None,
    ) -> Transaction:
        current = await self.get_transaction(transaction_id)
        changes: dict[str, object] = {}
        if category_id is not None:
            await self._require_category(category_id)
            changes["category_id"] = category_id
        if amount is not None:
            changes["amount"] = self._require_amount(amount)
        if type is not None:
            changes["type"] = type
        if date is not None:
            changes["date"] = date
        if note is not None:
            changes["note"] = note or None
        updated = current.model_copy(update=changes)
        return await self.store.save_transaction(updated)

    async def delete_transaction(self, transaction_id: str) -> None:
        if not await self.store.delete_transaction(transaction_id):
            raise RecordNotFoundError(f"Transaction {transaction_id} not found")
        logger.info("[LEDGER] Deleted transaction %s", transaction_id)

    # ── Categories ───────────────────────────────────────────────────────────

    async def list_categories(self) -> list[Category]:
        return await self.store.list_categories()

    async def get_category(self, category_id: str) -> Category:
        for category in await self.store.list_categories():
            if category.id == category_id:
                return category
        raise RecordNotFoundError(f"Category {category_id} not found")

    async def add_category(
        self,
        *,
        name: str,
        type: TransactionType,
        color: str,
        icon: str | None = None,
    ) -> Category:
        category = Category(id=_new_id("cat"), name=name, type=type, color=color, icon=icon)
        return await self.store.save_category(category)

    async def update_category(
        self,
        category_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Category:
        current = await self.get_category(category_id)
        changes = {
            key: value
            for key, value in (("name", name), ("color", color), ("icon", icon))
            if value is not None
        }
        return await self.store.save_category(Category.model_validate({**current.model_dump(), **changes}))

    async def delete_category(self, category_id: str) -> None:
        # Transactions pointing at the category are left untouched
        if not await self.store.delete_category(category_id):
            raise RecordNotFoundError(f"Category {category_id} not found")
        logger.info("[LEDGER] Deleted category %s", category_id)

    async def clear_all_data(self) -> None:
        await self.store.clear()
        await self.store.ensure_default_data()
        logger.info("[LEDGER] All data cleared and defaults restored.")
