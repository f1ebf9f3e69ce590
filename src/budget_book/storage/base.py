from abc import ABC, abstractmethod

from budget_book.models import Category, Transaction


class StorageError(RuntimeError):
    """A write against the backing store failed."""


class BudgetStore(ABC):
    """Persistence capability shared by the local and remote backends.

    Reads degrade to empty results when the backend is unavailable; writes
    raise ``StorageError``.
    """

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """All transactions, newest first."""
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """Insert or replace by id."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        pass

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        """Insert or replace by id."""
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> bool:
        pass

    @abstractmethod
    async def ensure_default_data(self) -> bool:
        """Seed default categories once. Returns True when seeding happened."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every transaction and category."""
        pass

    async def aclose(self) -> None:
        return None
