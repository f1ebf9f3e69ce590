import asyncio
import json
import os
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from budget_book.domain.timefmt import to_local_naive
from budget_book.logger import get_logger
from budget_book.models import Category, Transaction
from budget_book.storage.base import BudgetStore, StorageError
from budget_book.storage.defaults import default_categories

logger = get_logger(__name__)

TRANSACTIONS_KEY = "budget_transactions"
CATEGORIES_KEY = "budget_categories"
INITIALIZED_KEY = "budget_initialized"


class LocalStore(BudgetStore):
    """Key-value store kept in a single JSON document on disk."""

    def __init__(self, data_path: str = "budget.json"):
        self.data_path = data_path
        self._lock = asyncio.Lock()

    # ── File access ──────────────────────────────────────────────────────────

    def _read(self) -> dict[str, Any]:
        if not os.path.exists(self.data_path):
            return {}
        with open(self.data_path, encoding="utf-8") as f:
            data = json.load(f, parse_float=Decimal)
        if not isinstance(data, dict):
            raise ValueError(f"{self.data_path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        directory = os.path.dirname(self.data_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.data_path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        os.replace(tmp_path, self.data_path)

    def _load_document(self) -> dict[str, Any]:
        try:
            return self._read()
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            logger.error("[STORAGE] Failed to read %s: %s", self.data_path, exc)
            return {}

    @staticmethod
    def _parse_items(raw: Any, model: type, kind: str) -> list:
        items = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                items.append(model.model_validate(entry))
            except ValidationError as exc:
                logger.warning("[STORAGE] Ignoring invalid %s record: %s", kind, exc)
        return items

    async def _mutate(self, key: str, update: Any) -> Any:
        """Apply ``update(records) -> (records, result)`` to one key and persist it."""
        async with self._lock:
            def apply() -> Any:
                try:
                    document = self._read()
                except (OSError, ValueError) as exc:
                    raise StorageError(f"Cannot read {self.data_path}: {exc}") from exc
                records, result = update(list(document.get(key) or []))
                document[key] = records
                try:
                    self._write(document)
                except OSError as exc:
                    raise StorageError(f"Cannot write {self.data_path}: {exc}") from exc
                return result

            return await asyncio.to_thread(apply)

    @staticmethod
    def _upsert(records: list[dict[str, Any]], payload: dict[str, Any]) -> list[dict[str, Any]]:
        for index, record in enumerate(records):
            if isinstance(record, dict) and record.get("id") == payload["id"]:
                records[index] = payload
                return records
        records.append(payload)
        return records

    @staticmethod
    def _remove(records: list[dict[str, Any]], record_id: str) -> tuple[list[dict[str, Any]], bool]:
        kept = [r for r in records if not (isinstance(r, dict) and r.get("id") == record_id)]
        return kept, len(kept) != len(records)

    # ── BudgetStore ──────────────────────────────────────────────────────────

    async def list_transactions(self) -> list[Transaction]:
        document = await asyncio.to_thread(self._load_document)
        transactions = self._parse_items(document.get(TRANSACTIONS_KEY), Transaction, "transaction")
        transactions.sort(key=lambda tx: to_local_naive(tx.date), reverse=True)
        return transactions

    async def list_categories(self) -> list[Category]:
        document = await asyncio.to_thread(self._load_document)
        return self._parse_items(document.get(CATEGORIES_KEY), Category, "category")

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        payload = transaction.model_dump(mode="json")
        await self._mutate(TRANSACTIONS_KEY, lambda records: (self._upsert(records, payload), None))
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._mutate(TRANSACTIONS_KEY, lambda records: self._remove(records, transaction_id))

    async def save_category(self, category: Category) -> Category:
        payload = category.model_dump(mode="json")
        await self._mutate(CATEGORIES_KEY, lambda records: (self._upsert(records, payload), None))
        return category

    async def delete_category(self, category_id: str) -> bool:
        return await self._mutate(CATEGORIES_KEY, lambda records: self._remove(records, category_id))

    async def ensure_default_data(self) -> bool:
        async with self._lock:
            def seed() -> bool:
                document = self._load_document()
                if document.get(INITIALIZED_KEY):
                    logger.info("[STORAGE] Already initialized.")
                    return False
                document[CATEGORIES_KEY] = [c.model_dump(mode="json") for c in default_categories()]
                document.setdefault(TRANSACTIONS_KEY, [])
                document[INITIALIZED_KEY] = True
                try:
                    self._write(document)
                except OSError as exc:
                    raise StorageError(f"Cannot write {self.data_path}: {exc}") from exc
                logger.info("[STORAGE] Initialized with default categories.")
                return True

            return await asyncio.to_thread(seed)

    async def clear(self) -> None:
        async with self._lock:
            def remove() -> None:
                try:
                    if os.path.exists(self.data_path):
                        os.remove(self.data_path)
                except OSError as exc:
                    raise StorageError(f"Cannot remove {self.data_path}: {exc}") from exc

            await asyncio.to_thread(remove)
        logger.info("[STORAGE] All data cleared.")
