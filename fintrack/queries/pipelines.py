"""
Aggregation Pipelines

Each function returns the stages that follow the owner `$match`,
which storage always puts first.

Only plain accumulators and date-part operators are used, so results
are the same on every supported server version.
"""

from datetime import datetime
from typing import Any

from fintrack.models.query import SummaryPeriod


PERIOD_PARTS: dict[str, list[str]] = {
    "day": ["year", "month", "day"],
    "week": ["year", "week"],
    "month": ["year", "month"],
    "year": ["year"],
}

_DATE_OPERATORS = {
    "year": "$year",
    "month": "$month",
    "day": "$dayOfMonth",
    "week": "$week",
}

_PROGRESS = {"$multiply": [{"$divide": ["$current_amount", "$target_amount"]}, 100]}


def _count_where(condition: dict[str, Any]) -> dict[str, Any]:
    return {"$sum": {"$cond": [condition, 1, 0]}}


# =============================================================================
# EXPENSES
# =============================================================================

def expense_totals() -> list[dict[str, Any]]:
    return [{
        "$group": {
            "_id": None,
            "total_expenses": {"$sum": "$amount"},
            "average_expense": {"$avg": "$amount"},
            "max_expense": {"$max": "$amount"},
            "min_expense": {"$min": "$amount"},
            "count": {"$sum": 1},
        }
    }]


def expense_time_buckets(period: SummaryPeriod) -> list[dict[str, Any]]:
    """Group by the date parts of `period`. Keys are formatted by the caller."""
    group_id = {part: {_DATE_OPERATORS[part]: "$date"} for part in PERIOD_PARTS[period]}
    return [{
        "$group": {
            "_id": group_id,
            "total_amount": {"$sum": "$amount"},
            "count": {"$sum": 1},
            "average_amount": {"$avg": "$amount"},
        }
    }]


def expense_categories() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$category",
                "total_amount": {"$sum": "$amount"},
                "count": {"$sum": 1},
                "average_amount": {"$avg": "$amount"},
            }
        },
        {"$sort": {"total_amount": -1, "_id": 1}},
    ]


# =============================================================================
# BILLS
# =============================================================================

def _overdue_condition(now: datetime) -> dict[str, Any]:
    return {"$and": [{"$eq": ["$is_active", True]}, {"$lt": ["$due_date", now]}]}


def bill_totals(now: datetime) -> list[dict[str, Any]]:
    return [{
        "$group": {
            "_id": None,
            "total_bills": {"$sum": 1},
            "active_bills": _count_where({"$eq": ["$is_active", True]}),
            "inactive_bills": _count_where({"$eq": ["$is_active", False]}),
            "overdue_bills": _count_where(_overdue_condition(now)),
            "total_amount": {"$sum": "$amount"},
            "average_amount": {"$avg": "$amount"},
        }
    }]


def bill_total_paid() -> list[dict[str, Any]]:
    return [
        {"$unwind": "$payment_history"},
        {"$group": {"_id": None, "total_paid": {"$sum": "$payment_history.amount"}}},
    ]


def bill_categories() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$category",
                "count": {"$sum": 1},
                "total_amount": {"$sum": "$amount"},
                "average_amount": {"$avg": "$amount"},
                "active_count": _count_where({"$eq": ["$is_active", True]}),
            }
        },
        {"$sort": {"total_amount": -1, "_id": 1}},
    ]


def bill_frequencies() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$frequency",
                "count": {"$sum": 1},
                "total_amount": {"$sum": "$amount"},
            }
        },
        {"$sort": {"count": -1, "_id": 1}},
    ]


# =============================================================================
# GOALS
# =============================================================================

def goal_totals() -> list[dict[str, Any]]:
    return [{
        "$group": {
            "_id": None,
            "total_goals": {"$sum": 1},
            "active_goals": _count_where({"$eq": ["$status", "active"]}),
            "completed_goals": _count_where({"$eq": ["$status", "completed"]}),
            "paused_goals": _count_where({"$eq": ["$status", "paused"]}),
            "total_target_amount": {"$sum": "$target_amount"},
            "total_current_amount": {"$sum": "$current_amount"},
            "average_progress": {"$avg": _PROGRESS},
        }
    }]


def goal_categories() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$category",
                "count": {"$sum": 1},
                "total_target_amount": {"$sum": "$target_amount"},
                "total_current_amount": {"$sum": "$current_amount"},
                "average_progress": {"$avg": _PROGRESS},
            }
        },
        {"$sort": {"total_target_amount": -1, "_id": 1}},
    ]


def goal_priorities() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$priority",
                "count": {"$sum": 1},
                "total_target_amount": {"$sum": "$target_amount"},
                "total_current_amount": {"$sum": "$current_amount"},
            }
        },
        {"$sort": {"count": -1, "_id": 1}},
    ]
