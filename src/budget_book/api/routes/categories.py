from typing import Annotated

from fastapi import APIRouter, Depends

from budget_book.api.dependencies import get_ledger
from budget_book.api.schemas import CategoryCreate, CategoryUpdate
from budget_book.models import Category
from budget_book.services.ledger import LedgerService

router = APIRouter(prefix="/api/categories")


@router.get("", response_model=list[Category])
async def list_categories(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> list[Category]:
    return await ledger.list_categories()


@router.post("", response_model=Category, status_code=201)
async def create_category(
    req: CategoryCreate,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Category:
    return await ledger.add_category(**req.model_dump())


@router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    req: CategoryUpdate,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Category:
    return await ledger.update_category(category_id, **req.model_dump(exclude_unset=True))


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.delete_category(category_id)
    return {"status": "deleted", "id": category_id}
