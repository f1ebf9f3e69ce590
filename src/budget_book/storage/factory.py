from budget_book.core import settings
from budget_book.logger import get_logger
from budget_book.storage.base import BudgetStore
from budget_book.storage.local import LocalStore
from budget_book.storage.remote import RemoteStore

logger = get_logger(__name__)


def create_store(backend: str | None = None) -> BudgetStore:
    """Build the store selected by ``STORAGE_BACKEND`` (or ``backend``)."""
    selected = backend or settings.get_storage_backend()
    if selected == "remote":
        store = RemoteStore()
        if not store.configured:
            logger.warning("BUDGET_API_URL not set. Remote storage will return no data.")
        logger.info("[STORAGE] Using remote backend at %s", store.base_url or "<unset>")
        return store

    path = settings.get_local_store_path()
    logger.info("[STORAGE] Using local backend at %s", path)
    return LocalStore(data_path=path)
