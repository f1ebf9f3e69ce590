import asyncio
import os
from decimal import Decimal, InvalidOperation
from time import monotonic
from typing import Any

import httpx
from pydantic import ValidationError

from budget_book.core import settings
from budget_book.domain.timefmt import to_local_naive
from budget_book.logger import get_logger
from budget_book.models import Category, Transaction
from budget_book.storage.base import BudgetStore, StorageError
from budget_book.storage.defaults import default_categories

logger = get_logger(__name__)

DEFAULT_CATEGORIES_CACHE_TTL_SECONDS = 60.0
DEFAULT_TIMEOUT_SECONDS = 30.0


def _category_from_api(raw: dict[str, Any]) -> Category:
    return Category(
        id=str(raw["id"]),
        name=raw["name"],
        type=raw["type"],
        color=raw["color"],
        icon=raw.get("icon"),
    )


def _transaction_from_api(raw: dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(raw["id"]),
        category_id=str(raw["categoryId"]),
        # Relational column is DECIMAL(15, 2), sent as a string
        amount=Decimal(str(raw["amount"])),
        type=raw["type"],
        date=raw["date"],
        note=raw.get("note"),
        created_at=raw.get("createdAt") or raw["date"],
    )


def _category_payload(category: Category) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": category.name,
        "type": category.type.value,
        "color": category.color,
    }
    if category.icon:
        payload["icon"] = category.icon
    return payload


def _transaction_payload(transaction: Transaction) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "categoryId": int(transaction.category_id)
        if transaction.category_id.isdigit()
        else transaction.category_id,
        "amount": f"{transaction.amount:.2f}",
        "type": transaction.type.value,
        "date": transaction.date.isoformat(),
    }
    if transaction.note is not None:
        payload["note"] = transaction.note
    return payload


def _is_server_id(record_id: str) -> bool:
    return record_id.isdigit()


def _is_not_found(exc: StorageError) -> bool:
    cause = exc.__cause__
    return isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404


class RemoteStore(BudgetStore):
    """Client for the budget HTTP API backed by a relational database."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        categories_cache_ttl: float | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or os.getenv("BUDGET_API_URL") or "").rstrip("/") or None
        self.token = token or os.getenv("BUDGET_API_TOKEN")
        self.headers = self._build_headers()
        self.timeout = timeout
        self._client = client
        self._client_lock = asyncio.Lock()
        self._cache_lock = asyncio.Lock()
        self._categories_cache: list[Category] | None = None
        self._categories_cache_expires_at = 0.0
        cache_ttl = categories_cache_ttl
        if cache_ttl is None:
            cache_ttl = settings.get_env_float(
                "BUDGET_CATEGORIES_TTL",
                DEFAULT_CATEGORIES_CACHE_TTL_SECONDS,
            )
        self._categories_cache_ttl = max(0.0, cache_ttl)

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v1/{path}"

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            # Another coroutine may have created it while we waited
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient(timeout=self.timeout)
                self._client = client
            return client

    # ── Category cache ───────────────────────────────────────────────────────

    def _get_cached_categories(self, *, allow_stale: bool = False) -> list[Category] | None:
        if self._categories_cache is None or self._categories_cache_ttl <= 0:
            return None
        if allow_stale:
            return self._categories_cache
        if monotonic() >= self._categories_cache_expires_at:
            return None
        return self._categories_cache

    def _cache_categories(self, categories: list[Category]) -> None:
        if self._categories_cache_ttl <= 0:
            return
        self._categories_cache = categories
        self._categories_cache_expires_at = monotonic() + self._categories_cache_ttl

    def invalidate_categories(self) -> None:
        self._categories_cache = None
        self._categories_cache_expires_at = 0.0

    # ── HTTP helpers ─────────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        client = await self._get_client()
        response = await client.request(method, self._url(path), headers=self.headers, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected response body for {method} {path}")
        return payload.get("data")

    async def _write(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self.configured:
            raise StorageError("Budget API not configured (BUDGET_API_URL is unset).")
        try:
            return await self._request(method, path, **kwargs)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[REMOTE] %s %s failed: %s", method, path, exc)
            raise StorageError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _parse_list(raw: Any, parser: Any, kind: str) -> list:
        items = []
        for entry in raw or []:
            try:
                items.append(parser(entry))
            except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
                logger.warning("[REMOTE] Ignoring invalid %s record: %s", kind, exc)
        return items

    async def fetch_categories(self, *, raise_on_error: bool = False) -> list[Category]:
        if not self.configured:
            if raise_on_error:
                raise StorageError("Budget API not configured (BUDGET_API_URL is unset).")
            return []
        try:
            raw = await self._request("GET", "categories")
        except (httpx.HTTPError, ValueError) as exc:
            if raise_on_error:
                raise StorageError(f"GET categories failed: {exc}") from exc
            logger.error("[REMOTE] Error fetching categories: %s", exc)
            return []
        return self._parse_list(raw, _category_from_api, "category")

    # ── BudgetStore ──────────────────────────────────────────────────────────

    async def list_categories(self, *, use_cache: bool = True) -> list[Category]:
        if not self.configured:
            logger.error("[REMOTE] Budget API URL missing.")
            return []
        if not use_cache:
            return await self.fetch_categories()

        async with self._cache_lock:
            cached = self._get_cached_categories()
            if cached is not None:
                return list(cached)
            try:
                categories = await self.fetch_categories(raise_on_error=True)
            except StorageError as exc:
                logger.error("[REMOTE] Error fetching categories: %s", exc)
                stale = self._get_cached_categories(allow_stale=True)
                return list(stale) if stale is not None else []
            self._cache_categories(categories)
            return list(categories)

    async def list_transactions(self) -> list[Transaction]:
        if not self.configured:
            logger.error("[REMOTE] Budget API URL missing.")
            return []
        try:
            raw = await self._request("GET", "transactions")
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("[REMOTE] Error fetching transactions: %s", exc)
            return []
        transactions = self._parse_list(raw, _transaction_from_api, "transaction")
        transactions.sort(key=lambda tx: to_local_naive(tx.date), reverse=True)
        return transactions

    async def _upsert(self, kind: str, record_id: str, payload: dict[str, Any]) -> Any:
        if _is_server_id(record_id):
            try:
                return await self._write("PUT", f"{kind}/{record_id}", json=payload)
            except StorageError as exc:
                if not _is_not_found(exc):
                    raise
                logger.info("[REMOTE] %s %s not found remotely, creating it.", kind, record_id)
        return await self._write("POST", kind, json=payload)

    @staticmethod
    def _assigned_id(data: Any, fallback: str) -> str:
        if isinstance(data, dict) and data.get("id") is not None:
            return str(data["id"])
        if isinstance(data, (int, str)) and str(data):
            return str(data)
        return fallback

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        data = await self._upsert("transactions", transaction.id, _transaction_payload(transaction))
        return transaction.model_copy(update={"id": self._assigned_id(data, transaction.id)})

    async def _delete(self, kind: str, record_id: str) -> bool:
        try:
            await self._write("DELETE", f"{kind}/{record_id}")
        except StorageError as exc:
            if _is_not_found(exc):
                return False
            raise
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._delete("transactions", transaction_id)

    async def save_category(self, category: Category) -> Category:
        data = await self._upsert("categories", category.id, _category_payload(category))
        self.invalidate_categories()
        return category.model_copy(update={"id": self._assigned_id(data, category.id)})

    async def delete_category(self, category_id: str) -> bool:
        deleted = await self._delete("categories", category_id)
        self.invalidate_categories()
        return deleted

    async def ensure_default_data(self) -> bool:
        try:
            existing = await self.fetch_categories(raise_on_error=True)
        except StorageError as exc:
            logger.error("[REMOTE] Cannot check default categories: %s", exc)
            return False
        if existing:
            logger.info("[REMOTE] Categories already present (%d).", len(existing))
            return False

        for category in default_categories():
            await self._write("POST", "categories", json=_category_payload(category))
        self.invalidate_categories()
        logger.info("[REMOTE] Default categories created.")
        return True

    async def clear(self) -> None:
        for transaction in await self.list_transactions():
            await self.delete_transaction(transaction.id)
        for category in await self.fetch_categories(raise_on_error=True):
            await self.delete_category(category.id)
        logger.info("[REMOTE] All data cleared.")
