from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from budget_book.domain.csv_codec import BOM, CSV_HEADER
from budget_book.models import Category, Transaction, TransactionType
from budget_book.services.ledger import (
    LedgerService,
    RecordNotFoundError,
    TransactionValidationError,
)
from budget_book.storage.base import StorageError
from budget_book.storage.local import LocalStore

INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


@pytest.fixture
async def ledger(tmp_path) -> LedgerService:
    service = LedgerService(
        store=LocalStore(data_path=str(tmp_path / "budget.json")),
        strict_type_labels=False,
    )
    await service.ensure_default_data()
    return service


def failing_store() -> AsyncMock:
    store = AsyncMock()
    store.list_transactions.side_effect = StorageError("offline")
    store.list_categories.side_effect = StorageError("offline")
    return store


@pytest.mark.anyio
async def test_monthly_summary_over_stored_transactions(ledger: LedgerService) -> None:
    await ledger.add_transaction(category_id="cat_1", amount=Decimal("50000"), type=INCOME,
                                 date=datetime(2024, 3, 5))
    await ledger.add_transaction(category_id="cat_4", amount=Decimal("12000"), type=EXPENSE,
                                 date=datetime(2024, 3, 10))
    await ledger.add_transaction(category_id="cat_4", amount=Decimal("8000"), type=EXPENSE,
                                 date=datetime(2024, 4, 1))

    summary = await ledger.get_monthly_summary(2024, 3)

    assert (summary.income, summary.expense, summary.balance) == (
        Decimal("50000"),
        Decimal("12000"),
        Decimal("38000"),
    )


@pytest.mark.anyio
async def test_reports_degrade_when_store_is_unavailable() -> None:
    ledger = LedgerService(store=failing_store(), strict_type_labels=False)

    summary = await ledger.get_monthly_summary(2024, 3)
    stats = await ledger.get_category_stats(datetime(2024, 3, 1), datetime(2024, 3, 31))

    assert summary.balance == Decimal("0")
    assert stats == []


@pytest.mark.anyio
async def test_category_stats_defaults_to_current_month(ledger: LedgerService) -> None:
    await ledger.add_transaction(category_id="cat_4", amount=Decimal("100"), type=EXPENSE)
    await ledger.add_transaction(category_id="cat_5", amount=Decimal("50"), type=EXPENSE,
                                 date=datetime(2001, 1, 1))

    stats = await ledger.get_category_stats()

    assert [(s.category_name, s.total) for s in stats] == [("식비", Decimal("100"))]


@pytest.mark.anyio
async def test_export_then_import_round_trip(ledger: LedgerService) -> None:
    await ledger.add_transaction(category_id="cat_1", amount=Decimal("50000"), type=INCOME,
                                 date=datetime(2024, 3, 5), note="월급")
    await ledger.add_transaction(category_id="cat_4", amount=Decimal("12000"), type=EXPENSE,
                                 date=datetime(2024, 3, 10), note='"점심", 회식')

    export = await ledger.export_to_csv(now=datetime(2024, 3, 31))

    assert export.count == 2
    assert export.filename == "가계부_20240331.csv"
    assert export.content.startswith(BOM.encode("utf-8"))
    assert export.text.startswith(CSV_HEADER)

    await ledger.clear_all_data()
    report = await ledger.import_from_csv(export.content.decode("utf-8"))

    assert report.imported_count == 2
    assert report.skipped_count == 0
    stored = await ledger.list_transactions()
    assert sorted(tx.note for tx in stored) == sorted(["월급", '"점심", 회식'])
    summary = await ledger.get_monthly_summary(2024, 3)
    assert summary.balance == Decimal("38000")


@pytest.mark.anyio
async def test_export_with_no_transactions(ledger: LedgerService) -> None:
    export = await ledger.export_to_csv()

    assert export.count == 0
    assert export.text == CSV_HEADER + "\n"


@pytest.mark.anyio
async def test_import_reports_skipped_lines(ledger: LedgerService) -> None:
    text = "\n".join([
        CSV_HEADER,
        '"2024. 3. 5.","수입","급여",1000,""',
        '"2024. 3. 5.","수입"',
        '"2024. 3. 6.","지출","없는카테고리",1000,""',
    ])

    report = await ledger.import_from_csv(text)

    assert report.imported_count == 1
    assert [issue.line_number for issue in report.skipped] == [3, 4]


@pytest.mark.anyio
async def test_import_honours_strict_type_labels(tmp_path) -> None:
    ledger = LedgerService(
        store=LocalStore(data_path=str(tmp_path / "budget.json")),
        strict_type_labels=True,
    )
    await ledger.ensure_default_data()

    report = await ledger.import_from_csv(CSV_HEADER + '\n"2024. 3. 5.","환불","식비",1000,""')

    assert report.imported_count == 0
    assert report.skipped_count == 1


@pytest.mark.anyio
async def test_import_stops_on_write_failure() -> None:
    store = AsyncMock()
    store.list_categories.return_value = [
        Category(id="cat_4", name="식비", type=EXPENSE, color="#EF4444"),
    ]
    saved: list[Transaction] = []

    async def save(tx: Transaction) -> Transaction:
        if saved:
            raise StorageError("disk full")
        saved.append(tx)
        return tx

    store.save_transaction.side_effect = save
    ledger = LedgerService(store=store, strict_type_labels=False)
    text = "\n".join([
        CSV_HEADER,
        '"2024. 3. 5.","지출","식비",1000,""',
        '"2024. 3. 6.","지출","식비",2000,""',
    ])

    with pytest.raises(StorageError):
        await ledger.import_from_csv(text)

    assert len(saved) == 1
    assert saved[0].amount == Decimal("1000")


@pytest.mark.anyio
async def test_add_transaction_validates_input(ledger: LedgerService) -> None:
    with pytest.raises(TransactionValidationError):
        await ledger.add_transaction(category_id="cat_4", amount=Decimal("0"), type=EXPENSE)
    with pytest.raises(TransactionValidationError):
        await ledger.add_transaction(category_id="missing", amount=Decimal("1"), type=EXPENSE)

    assert await ledger.list_transactions() == []


@pytest.mark.anyio
async def test_update_and_delete_transaction(ledger: LedgerService) -> None:
    tx = await ledger.add_transaction(category_id="cat_4", amount=Decimal("10"), type=EXPENSE,
                                      date=datetime(2024, 3, 1), note="커피")

    updated = await ledger.update_transaction(tx.id, amount=Decimal("12.5"), note="")

    assert updated.amount == Decimal("12.5")
    assert updated.note is None
    assert updated.created_at == tx.created_at
    assert (await ledger.get_transaction(tx.id)).amount == Decimal("12.5")

    await ledger.delete_transaction(tx.id)
    with pytest.raises(RecordNotFoundError):
        await ledger.get_transaction(tx.id)
    with pytest.raises(RecordNotFoundError):
        await ledger.delete_transaction(tx.id)


@pytest.mark.anyio
async def test_list_transactions_by_range(ledger: LedgerService) -> None:
    for day in (1, 15, 28):
        await ledger.add_transaction(category_id="cat_4", amount=Decimal(day), type=EXPENSE,
                                     date=datetime(2024, 2, day))

    in_range = await ledger.list_transactions(datetime(2024, 2, 10), datetime(2024, 2, 28))
    open_start = await ledger.list_transactions(None, datetime(2024, 2, 10))

    assert sorted(tx.amount for tx in in_range) == [Decimal("15"), Decimal("28")]
    assert [tx.amount for tx in open_start] == [Decimal("1")]


@pytest.mark.anyio
async def test_deleting_category_leaves_transactions_as_unknown(ledger: LedgerService) -> None:
    await ledger.add_transaction(category_id="cat_6", amount=Decimal("300"), type=EXPENSE,
                                 date=datetime(2024, 3, 2))

    await ledger.delete_category("cat_6")
    stats = await ledger.get_category_stats(datetime(2024, 3, 1), datetime(2024, 3, 31))

    assert len(await ledger.list_transactions()) == 1
    assert stats[0].category_name == "Unknown"


@pytest.mark.anyio
async def test_category_crud(ledger: LedgerService) -> None:
    created = await ledger.add_category(name="여행", type=EXPENSE, color="#123456", icon="✈️")
    updated = await ledger.update_category(created.id, name="해외여행")

    assert updated.name == "해외여행"
    assert updated.color == "#123456"
    assert (await ledger.get_category(created.id)).name == "해외여행"

    with pytest.raises(RecordNotFoundError):
        await ledger.update_category("missing", name="x")


@pytest.mark.anyio
async def test_clear_all_data_restores_defaults(ledger: LedgerService) -> None:
    await ledger.add_transaction(category_id="cat_4", amount=Decimal("10"), type=EXPENSE)
    await ledger.delete_category("cat_10")

    await ledger.clear_all_data()

    assert await ledger.list_transactions() == []
    assert len(await ledger.list_categories()) == 10


def test_strict_flag_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("CSV_STRICT_TYPE_LABELS", "true")

    assert LedgerService(store=AsyncMock()).strict_type_labels is True


@pytest.mark.anyio
@pytest.mark.parametrize("amount", ["1e20000000", "10000000000000", "0.001"])
async def test_add_transaction_rejects_amounts_outside_column_range(
    ledger: LedgerService, amount: str
) -> None:
    with pytest.raises(TransactionValidationError):
        await ledger.add_transaction(category_id="cat_4", amount=Decimal(amount), type=EXPENSE)

    assert await ledger.list_transactions() == []


@pytest.mark.anyio
async def test_update_transaction_rejects_oversized_amount(ledger: LedgerService) -> None:
    tx = await ledger.add_transaction(category_id="cat_4", amount=Decimal("10"), type=EXPENSE)

    with pytest.raises(TransactionValidationError):
        await ledger.update_transaction(tx.id, amount=Decimal("1e15"))

    assert (await ledger.get_transaction(tx.id)).amount == Decimal("10")
