from fastapi import HTTPException, Request

from budget_book.services.ledger import LedgerService


def get_ledger(request: Request) -> LedgerService:
    ledger = getattr(request.app.state, "ledger", None)
    if not ledger:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return ledger
