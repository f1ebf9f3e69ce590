from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from budget_book.api.dependencies import get_ledger
from budget_book.models import CategoryStat, MonthlySummary
from budget_book.services.date_range import resolve_date_range
from budget_book.services.ledger import LedgerService

router = APIRouter(prefix="/api/statistics")


@router.get("/monthly-summary", response_model=MonthlySummary)
async def monthly_summary(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
    year: Annotated[int, Query(ge=1, le=9999)],
    month: Annotated[int, Query(ge=1, le=12)],
) -> MonthlySummary:
    return await ledger.get_monthly_summary(year, month)


@router.get("/category-stats", response_model=list[CategoryStat])
async def category_stats(
    ledger: Annotated[LedgerService, Depends(get_ledger)],
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[CategoryStat]:
    try:
        start, end = resolve_date_range(start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return await ledger.get_category_stats(start, end)
