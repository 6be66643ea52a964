"""
Expense Models

An expense is a single spending event. It has no lifecycle beyond
create / update / delete and no derived child records.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from fintrack.models.common import OwnedRecord, TagList, TimestampedModel, utcnow


class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    SHOPPING = "shopping"
    EDUCATION = "education"
    TRAVEL = "travel"
    OTHER = "other"


class ExpensePaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    OTHER = "other"


class ExpenseCreate(TimestampedModel):
    """Payload for recording a new expense."""

    title: str = Field(..., min_length=2, max_length=100)
    amount: float = Field(..., ge=0.01, le=1_000_000)
    category: ExpenseCategory
    date: Optional[datetime] = Field(
        default=None,
        description="When the money was spent; defaults to now"
    )
    description: str = Field(default="", max_length=500)
    tags: TagList = Field(default_factory=list)
    is_recurring: bool = False
    receipt_url: Optional[str] = Field(default=None, max_length=500)
    payment_method: ExpensePaymentMethod = ExpensePaymentMethod.CASH
    location: str = Field(default="", max_length=100)


class ExpenseUpdate(TimestampedModel):
    """Partial update. Only fields sent by the client are applied."""

    title: Optional[str] = Field(default=None, min_length=2, max_length=100)
    amount: Optional[float] = Field(default=None, ge=0.01, le=1_000_000)
    category: Optional[ExpenseCategory] = None
    date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[TagList] = None
    is_recurring: Optional[bool] = None
    receipt_url: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[ExpensePaymentMethod] = None
    location: Optional[str] = Field(default=None, max_length=100)


class Expense(OwnedRecord):
    """A stored expense."""

    title: str
    amount: float
    category: ExpenseCategory
    date: datetime = Field(default_factory=utcnow)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    receipt_url: Optional[str] = None
    payment_method: ExpensePaymentMethod = ExpensePaymentMethod.CASH
    location: str = ""

    @property
    def formatted_amount(self) -> str:
        return f"{self.amount:.2f}"

    def to_response(self) -> dict:
        data = self.model_dump(mode="json")
        data["formatted_amount"] = self.formatted_amount
        return data
