"""
Query Models

Structured listing requests for each collection, plus the
pagination envelope returned with every page.

CRITICAL: These models never carry an owner. The owner id is passed
separately to the executor and applied by storage on every call, so a
query can never reach across users.
"""

import math
from datetime import datetime
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from fintrack.models.bill import BillCategory, BillFrequency
from fintrack.models.common import TagList, TimestampedModel
from fintrack.models.expense import ExpenseCategory
from fintrack.models.goal import GoalCategory, GoalPriority, GoalStatus


SortOrder = Literal["asc", "desc"]
SummaryPeriod = Literal["day", "week", "month", "year"]


class PageRequest(TimestampedModel):
    """Common paging and sorting parameters."""

    # Subclasses list the fields a client may sort on
    sortable_fields: ClassVar[frozenset[str]] = frozenset()

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: SortOrder = "asc"

    @model_validator(mode="after")
    def validate_sort_field(self) -> "PageRequest":
        if self.sort_by not in self.sortable_fields:
            allowed = ", ".join(sorted(self.sortable_fields))
            raise ValueError(f"Cannot sort by '{self.sort_by}'. Choose from: {allowed}")
        return self

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def sort_direction(self) -> int:
        return -1 if self.sort_order == "desc" else 1


class ExpenseQuery(PageRequest):
    """Expense listing filters."""

    sortable_fields: ClassVar[frozenset[str]] = frozenset(
        {"date", "amount", "title", "category", "created_at", "updated_at"}
    )

    sort_by: str = "date"
    sort_order: SortOrder = "desc"

    category: Optional[ExpenseCategory] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_amount: Optional[float] = Field(default=None, ge=0)
    max_amount: Optional[float] = Field(default=None, ge=0)
    tags: TagList = Field(default_factory=list)
    search: Optional[str] = Field(default=None, max_length=100)


class BillQuery(PageRequest):
    """Bill listing filters."""

    sortable_fields: ClassVar[frozenset[str]] = frozenset(
        {"due_date", "amount", "title", "category", "frequency", "created_at", "updated_at"}
    )

    sort_by: str = "due_date"
    sort_order: SortOrder = "asc"

    category: Optional[BillCategory] = None
    frequency: Optional[BillFrequency] = None
    is_active: Optional[bool] = None
    is_overdue: bool = False
    is_due_soon: bool = False


class GoalQuery(PageRequest):
    """Goal listing filters."""

    sortable_fields: ClassVar[frozenset[str]] = frozenset(
        {"created_at", "updated_at", "deadline", "target_amount", "current_amount",
         "title", "priority", "status"}
    )

    sort_by: str = "created_at"
    sort_order: SortOrder = "desc"

    status: Optional[GoalStatus] = None
    category: Optional[GoalCategory] = None
    priority: Optional[GoalPriority] = None


class Pagination(BaseModel):
    """Page position as reported to clients."""

    current: int
    pages: int
    total: int
    limit: int

    @classmethod
    def for_query(cls, query: PageRequest, total: int) -> "Pagination":
        return cls(
            current=query.page,
            pages=math.ceil(total / query.limit),
            total=total,
            limit=query.limit,
        )


class PageResult(BaseModel):
    """One page of records plus owner-wide statistics."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination
    stats: dict[str, Any] = Field(default_factory=dict)
