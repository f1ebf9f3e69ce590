from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from budget_book.domain.csv_codec import CsvRowIssue
from budget_book.models import Transaction, TransactionType


class TransactionCreate(BaseModel):
    category_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    type: TransactionType
    date: datetime | None = None
    note: str | None = None


class TransactionUpdate(BaseModel):
    category_id: str | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    type: TransactionType | None = None
    date: datetime | None = None
    note: str | None = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: TransactionType
    color: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str | None = Field(default=None, max_length=50)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: str | None = Field(default=None, max_length=50)


class ImportIssue(BaseModel):
    line_number: int
    line: str
    reason: str

    @classmethod
    def from_issue(cls, issue: CsvRowIssue) -> "ImportIssue":
        return cls(line_number=issue.line_number, line=issue.line, reason=issue.reason)


class ImportResponse(BaseModel):
    imported: int
    skipped: int
    transactions: list[Transaction]
    issues: list[ImportIssue]
