"""
Bill Models and Recurrence Rules

A bill is a recurring or one-time obligation. Paying it appends to an
embedded payment history and either deactivates the bill (one-time)
or moves the due date forward by the recurrence interval.

DESIGN DECISION: Status attributes (days until due, overdue, due soon,
total paid) are pure functions of stored fields and the current time.
They are recomputed on every read and never persisted, so they
cannot go stale.

CALENDAR POLICY: Adding months rolls overflow days into the next
month instead of clamping. Jan 31 + 1 month is Mar 2 (leap year) or
Mar 3; Feb 29 + 1 year is Mar 1.
"""

import calendar
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import Field

from fintrack.models.common import OwnedRecord, TagList, TimestampedModel, utcnow


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillCategory(str, Enum):
    """Supported bill categories."""
    UTILITIES = "utilities"
    RENT = "rent"
    INSURANCE = "insurance"
    SUBSCRIPTION = "subscription"
    LOAN = "loan"
    MORTGAGE = "mortgage"
    CREDIT_CARD = "credit_card"
    PHONE = "phone"
    INTERNET = "internet"
    OTHER = "other"


class BillFrequency(str, Enum):
    """How often a bill recurs. ONCE bills are deactivated when paid."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONCE = "once"


class BillPaymentMethod(str, Enum):
    """How a bill is paid."""
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    AUTO_DEBIT = "auto_debit"
    DIGITAL_WALLET = "digital_wallet"
    OTHER = "other"


RECURRENCE_DAYS = {
    BillFrequency.WEEKLY: 7,
    BillFrequency.BIWEEKLY: 14,
}

RECURRENCE_MONTHS = {
    BillFrequency.MONTHLY: 1,
    BillFrequency.QUARTERLY: 3,
    BillFrequency.YEARLY: 12,
}


# =============================================================================
# RECURRENCE ENGINE
# =============================================================================

def add_months(value: datetime, months: int) -> datetime:
    """
    Move `value` forward by whole calendar months, keeping the day of month.

    Days that do not exist in the target month roll over into the
    following month (Jan 31 + 1 month -> Mar 3 in a common year).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]

    if value.day <= last_day:
        return value.replace(year=year, month=month)

    overflow = value.day - last_day
    return value.replace(year=year, month=month, day=last_day) + timedelta(days=overflow)


def next_due_date(
    frequency: BillFrequency,
    paid_at: datetime,
    current_due_date: Optional[datetime],
) -> Optional[datetime]:
    """
    Compute the due date that follows a payment made at `paid_at`.

    ONCE bills do not recur; their due date is returned unchanged.
    """
    frequency = BillFrequency(frequency)

    if frequency in RECURRENCE_DAYS:
        return paid_at + timedelta(days=RECURRENCE_DAYS[frequency])
    if frequency in RECURRENCE_MONTHS:
        return add_months(paid_at, RECURRENCE_MONTHS[frequency])
    return current_due_date


# =============================================================================
# STATUS CLASSIFICATION
# =============================================================================

def days_until_due(due_date: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days between today and the due date, both taken at midnight."""
    if due_date is None:
        return None
    return (due_date.date() - now.date()).days


def is_overdue(is_active: bool, due_date: Optional[datetime], now: datetime) -> bool:
    """Only active bills can be overdue."""
    if due_date is None or not is_active:
        return False
    return now > due_date


def is_due_soon(days_left: Optional[int], reminder_days: int) -> bool:
    return days_left is not None and 0 <= days_left <= reminder_days


# =============================================================================
# BILL MODELS
# =============================================================================

class PaymentRecord(TimestampedModel):
    """One entry in a bill's payment history."""

    payment_date: datetime = Field(default_factory=utcnow)
    amount: float = Field(..., ge=0)
    payment_method: Optional[BillPaymentMethod] = None
    reference: Optional[str] = Field(default=None, max_length=100)


class BillCreate(TimestampedModel):
    """Payload for creating a bill. Due date is checked against now separately."""

    title: str = Field(..., min_length=2, max_length=100)
    description: str = Field(default="", max_length=500)
    amount: float = Field(..., ge=0.01, le=1_000_000)
    category: BillCategory
    due_date: datetime
    frequency: BillFrequency
    is_auto_paid: bool = False
    next_due_date: Optional[datetime] = None
    payment_method: BillPaymentMethod = BillPaymentMethod.BANK_TRANSFER
    reminder_days: int = Field(default=3, ge=0, le=30)
    grace_period: int = Field(default=0, ge=0, le=30)
    late_fee: float = Field(default=0, ge=0)
    vendor: str = Field(default="", max_length=100)
    account_number: str = Field(default="", max_length=50)
    tags: TagList = Field(default_factory=list)


class BillUpdate(TimestampedModel):
    """Partial update. Payment history and last_paid only change via mark-paid."""

    title: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[float] = Field(default=None, ge=0.01, le=1_000_000)
    category: Optional[BillCategory] = None
    due_date: Optional[datetime] = None
    frequency: Optional[BillFrequency] = None
    is_active: Optional[bool] = None
    is_auto_paid: Optional[bool] = None
    next_due_date: Optional[datetime] = None
    payment_method: Optional[BillPaymentMethod] = None
    reminder_days: Optional[int] = Field(default=None, ge=0, le=30)
    grace_period: Optional[int] = Field(default=None, ge=0, le=30)
    late_fee: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = Field(default=None, max_length=100)
    account_number: Optional[str] = Field(default=None, max_length=50)
    tags: Optional[TagList] = None


class MarkPaidRequest(TimestampedModel):
    """Mark-paid payload. Missing amount/method fall back to the bill's own."""

    payment_amount: Optional[float] = Field(default=None, ge=0)
    payment_method: Optional[BillPaymentMethod] = None
    reference: Optional[str] = Field(default=None, max_length=100)


class Bill(OwnedRecord):
    """A stored bill with its embedded payment history."""

    title: str
    description: str = ""
    amount: float
    category: BillCategory
    due_date: Optional[datetime] = None
    frequency: BillFrequency
    is_active: bool = True
    is_auto_paid: bool = False
    last_paid: Optional[datetime] = None
    next_due_date: Optional[datetime] = None
    payment_method: BillPaymentMethod = BillPaymentMethod.BANK_TRANSFER
    reminder_days: int = 3
    grace_period: int = 0
    late_fee: float = 0
    vendor: str = ""
    account_number: str = ""
    tags: list[str] = Field(default_factory=list)
    payment_history: list[PaymentRecord] = Field(default_factory=list)

    def days_until_due(self, now: Optional[datetime] = None) -> Optional[int]:
        return days_until_due(self.due_date, now or utcnow())

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        return is_overdue(self.is_active, self.due_date, now or utcnow())

    def is_due_soon(self, now: Optional[datetime] = None) -> bool:
        return is_due_soon(self.days_until_due(now), self.reminder_days)

    @property
    def total_paid(self) -> float:
        return sum(payment.amount for payment in self.payment_history)

    def days_overdue(self, now: Optional[datetime] = None) -> int:
        """Whole days elapsed since the due date (0 if not past due)."""
        now = now or utcnow()
        if self.due_date is None or now <= self.due_date:
            return 0
        return int((now - self.due_date).total_seconds() // 86400)

    def amount_due(self, now: Optional[datetime] = None) -> float:
        """Bill amount plus the late fee once the grace period has passed."""
        if self.days_overdue(now) > self.grace_period:
            return self.amount + self.late_fee
        return self.amount

    def build_payment(
        self,
        paid_at: datetime,
        amount: Optional[float] = None,
        method: Optional[BillPaymentMethod] = None,
        reference: Optional[str] = None,
    ) -> tuple[PaymentRecord, dict]:
        """
        Describe a payment without applying it.

        Returns the history entry to append and the field changes that
        go with it, so storage can apply both in one atomic update.
        """
        payment = PaymentRecord(
            payment_date=paid_at,
            amount=self.amount if amount is None else amount,
            payment_method=method or self.payment_method,
            reference=reference,
        )

        changes: dict = {"last_paid": paid_at}
        if self.frequency == BillFrequency.ONCE:
            changes["is_active"] = False
        else:
            new_due = next_due_date(self.frequency, paid_at, self.due_date)
            changes["due_date"] = new_due
            changes["next_due_date"] = new_due

        return payment, changes

    def to_response(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        data = self.model_dump(mode="json")
        data["days_until_due"] = self.days_until_due(now)
        data["is_overdue"] = self.is_overdue(now)
        data["is_due_soon"] = self.is_due_soon(now)
        data["total_paid"] = self.total_paid
        return data
