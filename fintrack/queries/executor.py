"""
Query Execution Engine

DESIGN DECISION: Query execution is DETERMINISTIC and OWNER-SCOPED.
Every listing and summary takes the owner id as its first argument and
hands it to storage, which applies it before any caller filter or
pipeline stage. There is no code path that aggregates across users.

Derived bill and goal attributes are computed here, on read, from the
stored fields and a single `now` taken once per call.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Optional

from fintrack.config import get_settings
from fintrack.models.bill import Bill
from fintrack.models.common import utcnow
from fintrack.models.query import (
    BillQuery,
    ExpenseQuery,
    GoalQuery,
    PageRequest,
    PageResult,
    Pagination,
    SummaryPeriod,
)
from fintrack.queries import pipelines
from fintrack.queries.filters import bill_filter, expense_filter, goal_filter
from fintrack.services.storage import (
    BillStorageInterface,
    ExpenseStorageInterface,
    GoalStorageInterface,
)


MONEY_FIELDS = {
    "total_expenses", "average_expense", "max_expense", "min_expense",
    "total_amount", "average_amount", "total_paid",
    "total_target_amount", "total_current_amount", "average_progress",
}

EMPTY_EXPENSE_STATS = {
    "total_expenses": 0,
    "average_expense": 0,
    "max_expense": 0,
    "min_expense": 0,
    "count": 0,
}

EMPTY_BILL_STATS = {
    "total_bills": 0,
    "active_bills": 0,
    "inactive_bills": 0,
    "overdue_bills": 0,
    "total_amount": 0,
    "average_amount": 0,
}

EMPTY_GOAL_STATS = {
    "total_goals": 0,
    "active_goals": 0,
    "completed_goals": 0,
    "paused_goals": 0,
    "total_target_amount": 0,
    "total_current_amount": 0,
    "average_progress": 0,
}


def _shape(row: dict[str, Any], id_key: Optional[str] = None) -> dict[str, Any]:
    """Round money fields and rename or drop the group `_id`."""
    shaped = {}
    for key, value in row.items():
        if key == "_id":
            if id_key:
                shaped[id_key] = value
            continue
        if key in MONEY_FIELDS and isinstance(value, (int, float)):
            value = round(value, 2)
        shaped[key] = value
    return shaped


def _single(rows: list[dict[str, Any]], empty: dict[str, Any]) -> dict[str, Any]:
    if not rows:
        return dict(empty)
    return {**empty, **_shape(rows[0])}


def format_period_key(period: SummaryPeriod, parts: dict[str, int]) -> str:
    """Render grouped date parts as 2024-01-05, 2024-03 (week), 2024-01 or 2024."""
    year = f"{parts['year']:04d}"
    if period == "day":
        return f"{year}-{parts['month']:02d}-{parts['day']:02d}"
    if period == "week":
        return f"{year}-{parts['week']:02d}"
    if period == "month":
        return f"{year}-{parts['month']:02d}"
    return year


class QueryExecutor:
    """
    Executes listings and summaries against record storage.

    GUARANTEES:
    - Only returns the requesting owner's data
    - Stable page order (sort field, then insertion order)
    - Zero-valued stats, never missing keys, when the owner has no records
    """

    def __init__(
        self,
        expenses: ExpenseStorageInterface,
        bills: BillStorageInterface,
        goals: GoalStorageInterface,
    ):
        self._expenses = expenses
        self._bills = bills
        self._goals = goals
        self._settings = get_settings().app

    @staticmethod
    def _sort(query: PageRequest) -> list[tuple[str, int]]:
        return [(query.sort_by, query.sort_direction)]

    # =========================================================================
    # LISTINGS
    # =========================================================================

    def list_expenses(self, owner_id: str, query: ExpenseQuery) -> PageResult:
        filters = expense_filter(query)
        expenses = self._expenses.find(
            owner_id, filters, self._sort(query), query.skip, query.limit
        )
        total = self._expenses.count(owner_id, filters)
        stats = self._expenses.aggregate(owner_id, pipelines.expense_totals())

        return PageResult(
            items=[expense.to_response() for expense in expenses],
            pagination=Pagination.for_query(query, total),
            stats=_single(stats, EMPTY_EXPENSE_STATS),
        )

    def list_bills(
        self,
        owner_id: str,
        query: BillQuery,
        now: Optional[datetime] = None,
    ) -> PageResult:
        now = now or utcnow()
        filters = bill_filter(query, now, self._settings.due_soon_filter_days)
        bills = self._bills.find(
            owner_id, filters, self._sort(query), query.skip, query.limit
        )
        total = self._bills.count(owner_id, filters)
        stats = self._bills.aggregate(owner_id, pipelines.bill_totals(now))

        summary = _single(stats, EMPTY_BILL_STATS)
        summary.pop("inactive_bills", None)

        return PageResult(
            items=[bill.to_response(now) for bill in bills],
            pagination=Pagination.for_query(query, total),
            stats=summary,
        )

    def list_goals(
        self,
        owner_id: str,
        query: GoalQuery,
        now: Optional[datetime] = None,
    ) -> PageResult:
        now = now or utcnow()
        filters = goal_filter(query)
        goals = self._goals.find(
            owner_id, filters, self._sort(query), query.skip, query.limit
        )
        total = self._goals.count(owner_id, filters)
        stats = self._goals.aggregate(owner_id, pipelines.goal_totals())

        summary = _single(stats, EMPTY_GOAL_STATS)
        summary.pop("paused_goals", None)

        return PageResult(
            items=[goal.to_response(now) for goal in goals],
            pagination=Pagination.for_query(query, total),
            stats=summary,
        )

    # =========================================================================
    # SUMMARIES
    # =========================================================================

    def expense_summary(self, owner_id: str, period: SummaryPeriod = "month") -> dict[str, Any]:
        """Spending per time bucket (oldest first) and per category (largest first)."""
        buckets = []
        for row in self._expenses.aggregate(owner_id, pipelines.expense_time_buckets(period)):
            shaped = _shape(row)
            shaped["period"] = format_period_key(period, row["_id"])
            buckets.append(shaped)
        buckets.sort(key=lambda bucket: bucket["period"])

        categories = [
            _shape(row, "category")
            for row in self._expenses.aggregate(owner_id, pipelines.expense_categories())
        ]

        return {"period": period, "stats": buckets, "category_stats": categories}

    def bill_summary(self, owner_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or utcnow()

        stats = _single(
            self._bills.aggregate(owner_id, pipelines.bill_totals(now)),
            EMPTY_BILL_STATS,
        )
        paid = self._bills.aggregate(owner_id, pipelines.bill_total_paid())
        stats["total_paid"] = round(paid[0]["total_paid"], 2) if paid else 0

        categories = [
            _shape(row, "category")
            for row in self._bills.aggregate(owner_id, pipelines.bill_categories())
        ]
        frequencies = [
            _shape(row, "frequency")
            for row in self._bills.aggregate(owner_id, pipelines.bill_frequencies())
        ]

        return {"stats": stats, "category_stats": categories, "frequency_stats": frequencies}

    def upcoming_bills(
        self,
        owner_id: str,
        now: Optional[datetime] = None,
        window_days: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Active bills due between now and the end of the window, in due order.

        The window is split into 7-day buckets starting at now; the last
        bucket is shorter when the window is not a whole number of weeks.
        Every bill falls in exactly one bucket.
        """
        now = now or utcnow()
        window_days = window_days or self._settings.upcoming_window_days
        window_end = now + timedelta(days=window_days)

        bills = self._bills.find(
            owner_id,
            {"is_active": True, "due_date": {"$gte": now, "$lte": window_end}},
            [("due_date", 1)],
        )

        week_count = math.ceil(window_days / 7)
        weeks = []
        for index in range(week_count):
            start = now + timedelta(days=7 * index)
            weeks.append({
                "week": index + 1,
                "start_date": start,
                "end_date": min(start + timedelta(days=7), window_end),
                "bills": [],
                "total_amount": 0.0,
            })

        for bill in bills:
            index = min(int((bill.due_date - now) / timedelta(days=7)), week_count - 1)
            weeks[index]["bills"].append(bill.to_response(now))
            weeks[index]["total_amount"] += bill.amount

        for week in weeks:
            week["count"] = len(week["bills"])
            week["total_amount"] = round(week["total_amount"], 2)

        return {
            "bills": [bill.to_response(now) for bill in bills],
            "summary": self._amount_summary([bill.amount for bill in bills]),
            "weekly_breakdown": weeks,
        }

    def overdue_bills(self, owner_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Active bills past their due date, oldest first.

        Totals include each bill's late fee once its grace period has passed.
        """
        now = now or utcnow()
        bills = self._bills.find(
            owner_id,
            {"is_active": True, "due_date": {"$lt": now}},
            [("due_date", 1)],
        )

        return {
            "bills": [self._overdue_response(bill, now) for bill in bills],
            "summary": self._amount_summary([bill.amount_due(now) for bill in bills]),
        }

    def goal_summary(self, owner_id: str) -> dict[str, Any]:
        stats = _single(
            self._goals.aggregate(owner_id, pipelines.goal_totals()),
            EMPTY_GOAL_STATS,
        )
        categories = [
            _shape(row, "category")
            for row in self._goals.aggregate(owner_id, pipelines.goal_categories())
        ]
        priorities = [
            _shape(row, "priority")
            for row in self._goals.aggregate(owner_id, pipelines.goal_priorities())
        ]

        return {"stats": stats, "category_stats": categories, "priority_stats": priorities}

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _overdue_response(bill: Bill, now: datetime) -> dict[str, Any]:
        data = bill.to_response(now)
        data["days_overdue"] = bill.days_overdue(now)
        data["amount_due"] = round(bill.amount_due(now), 2)
        return data

    @staticmethod
    def _amount_summary(amounts: list[float]) -> dict[str, Any]:
        total = sum(amounts)
        return {
            "total_bills": len(amounts),
            "total_amount": round(total, 2),
            "average_amount": round(total / len(amounts), 2) if amounts else 0,
        }
