"""
Goal Models and Funding Rules

A goal is a savings target. Adding funds can complete it; nothing
ever un-completes it automatically.

STATES: active -> completed | paused | cancelled
- add funds: completes the goal once current >= target
- withdraw funds: never re-evaluates the status
- manual status change: any state to any state

KNOWN INCONSISTENCY: a completed goal stays completed after a
withdrawal takes it back under target.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from fintrack.models.common import OwnedRecord, TagList, TimestampedModel, utcnow


class GoalCategory(str, Enum):
    """What the money is being saved for."""
    SAVINGS = "savings"
    INVESTMENT = "investment"
    PURCHASE = "purchase"
    EMERGENCY = "emergency"
    EDUCATION = "education"
    TRAVEL = "travel"
    RETIREMENT = "retirement"
    OTHER = "other"


class GoalStatus(str, Enum):
    """Goal lifecycle state."""
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def reaches_target(current_amount: float, target_amount: float) -> bool:
    """Completion threshold used by add-funds."""
    return current_amount >= target_amount


def progress_percentage(current_amount: float, target_amount: float) -> int:
    if target_amount == 0:
        return 0
    return math.floor(current_amount / target_amount * 100 + 0.5)


class Milestone(TimestampedModel):
    """A named sub-target. Tracked, not enforced by the funding rules."""

    amount: float = Field(..., ge=0)
    description: str = Field(default="", max_length=200)
    achieved: bool = False
    achieved_date: Optional[datetime] = None


class GoalCreate(TimestampedModel):
    """Payload for creating a goal. Deadline and amounts are cross-checked separately."""

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(default="", max_length=500)
    target_amount: float = Field(..., ge=1, le=10_000_000)
    current_amount: float = Field(default=0, ge=0)
    deadline: datetime
    category: GoalCategory = GoalCategory.SAVINGS
    priority: GoalPriority = GoalPriority.MEDIUM
    auto_update: bool = False
    milestones: list[Milestone] = Field(default_factory=list)
    tags: TagList = Field(default_factory=list)


class GoalUpdate(TimestampedModel):
    """
    Partial update.

    Status is not editable here; it changes only through add-funds
    or the explicit status transition, so completed_at stays in step.
    """

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_amount: Optional[float] = Field(default=None, ge=1, le=10_000_000)
    current_amount: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[datetime] = None
    category: Optional[GoalCategory] = None
    priority: Optional[GoalPriority] = None
    auto_update: Optional[bool] = None
    milestones: Optional[list[Milestone]] = None
    tags: Optional[TagList] = None


class FundsRequest(TimestampedModel):
    """Add-funds / withdraw-funds payload."""

    amount: float = Field(..., gt=0)


class StatusChange(TimestampedModel):
    status: GoalStatus


class Goal(OwnedRecord):
    """A stored savings goal."""

    title: str
    description: str = ""
    target_amount: float
    current_amount: float = 0
    deadline: Optional[datetime] = None
    category: GoalCategory = GoalCategory.SAVINGS
    status: GoalStatus = GoalStatus.ACTIVE
    priority: GoalPriority = GoalPriority.MEDIUM
    auto_update: bool = False
    milestones: list[Milestone] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None

    @property
    def progress_percentage(self) -> int:
        return progress_percentage(self.current_amount, self.target_amount)

    @property
    def remaining_amount(self) -> float:
        return self.target_amount - self.current_amount

    @property
    def is_completed(self) -> bool:
        return self.status == GoalStatus.COMPLETED

    def days_remaining(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.deadline is None:
            return None
        seconds = (self.deadline - (now or utcnow())).total_seconds()
        return math.ceil(seconds / 86400)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.deadline is None or self.is_completed:
            return False
        return (now or utcnow()) > self.deadline

    def should_complete(self) -> bool:
        """True when funding has reached the target but the status has not caught up."""
        return not self.is_completed and reaches_target(self.current_amount, self.target_amount)

    def to_response(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        data = self.model_dump(mode="json")
        data["progress_percentage"] = self.progress_percentage
        data["remaining_amount"] = self.remaining_amount
        data["days_remaining"] = self.days_remaining(now)
        data["is_overdue"] = self.is_overdue(now)
        return data
