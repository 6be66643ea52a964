"""
Listing Filters

Translate validated query models into MongoDB filter documents.
The owner constraint is added by storage, never here.
"""

import re
from datetime import datetime, timedelta
from typing import Any

from fintrack.models.query import BillQuery, ExpenseQuery, GoalQuery


def _range(lower: Any = None, upper: Any = None) -> dict[str, Any]:
    bounds = {}
    if lower is not None:
        bounds["$gte"] = lower
    if upper is not None:
        bounds["$lte"] = upper
    return bounds


def expense_filter(query: ExpenseQuery) -> dict[str, Any]:
    filters: dict[str, Any] = {}

    if query.category:
        filters["category"] = query.category.value

    dates = _range(query.start_date, query.end_date)
    if dates:
        filters["date"] = dates

    amounts = _range(query.min_amount, query.max_amount)
    if amounts:
        filters["amount"] = amounts

    if query.tags:
        filters["tags"] = {"$in": list(query.tags)}

    if query.search:
        # Search text is matched literally, never as a pattern
        pattern = {"$regex": re.escape(query.search), "$options": "i"}
        filters["$or"] = [{"title": pattern}, {"description": pattern}]

    return filters


def bill_filter(query: BillQuery, now: datetime, due_soon_days: int) -> dict[str, Any]:
    """
    Overdue and due-soon both restrict to active bills. When both are
    requested the due-date conditions are intersected.
    """
    filters: dict[str, Any] = {}

    if query.category:
        filters["category"] = query.category.value
    if query.frequency:
        filters["frequency"] = query.frequency.value
    if query.is_active is not None:
        filters["is_active"] = query.is_active

    due: dict[str, Any] = {}
    if query.is_overdue:
        due["$lt"] = now
        filters["is_active"] = True
    if query.is_due_soon:
        due["$gte"] = now
        due["$lte"] = now + timedelta(days=due_soon_days)
        filters["is_active"] = True
    if due:
        filters["due_date"] = due

    return filters


def goal_filter(query: GoalQuery) -> dict[str, Any]:
    filters: dict[str, Any] = {}
    if query.status:
        filters["status"] = query.status.value
    if query.category:
        filters["category"] = query.category.value
    if query.priority:
        filters["priority"] = query.priority.value
    return filters
