from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

# Remote amounts live in a DECIMAL(15, 2) column
AMOUNT_MAX_INTEGER_DIGITS = 13
AMOUNT_QUANTUM = Decimal("0.01")


def amount_fits_column(amount: Decimal) -> bool:
    """True when ``amount`` has at most 13 integer digits and 2 decimal places."""
    if not amount.is_finite():
        return False
    if amount.is_zero():
        return True
    if amount.adjusted() >= AMOUNT_MAX_INTEGER_DIGITS:
        return False
    return amount == amount.quantize(AMOUNT_QUANTUM)


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Category(BaseModel):
    id: str
    name: str
    type: TransactionType
    color: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str | None = None


class Transaction(BaseModel):
    id: str
    category_id: str  # may point at a deleted category
    amount: Decimal = Field(ge=0)
    type: TransactionType  # stored independently of the category's type
    date: datetime
    note: str | None = None
    created_at: datetime


class MonthlySummary(BaseModel):
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class CategoryStat(BaseModel):
    category_id: str
    category_name: str
    type: TransactionType
    total: Decimal
