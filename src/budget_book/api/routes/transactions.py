from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from budget_book.api.dependencies import get_ledger
from budget_book.api.schemas import TransactionCreate, TransactionUpdate
from budget_book.models import Transaction
from budget_book.services.date_range import resolve_date_range
from budget_book.services.ledger import LedgerService

router = APIRouter(prefix="/api/transactions")


@router.get("", response_model=list[Transaction])
async def list_transactions(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[Transaction]:
    try:
        start, end = resolve_date_range(start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return await ledger.list_transactions(start, end)


@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: str,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Transaction:
    return await ledger.get_transaction(transaction_id)


@router.post("", response_model=Transaction, status_code=201)
async def create_transaction(
    req: TransactionCreate,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Transaction:
    return await ledger.add_transaction(**req.model_dump())


@router.put("/{transaction_id}", response_model=Transaction)
async def update_transaction(
    transaction_id: str,
    req: TransactionUpdate,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> Transaction:
    return await ledger.update_transaction(transaction_id, **req.model_dump(exclude_unset=True))


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    ledger: Annotated[LedgerService, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.delete_transaction(transaction_id)
    return {"status": "deleted", "id": transaction_id}
