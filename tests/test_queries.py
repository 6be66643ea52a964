"""
Tests for listings and summaries

Records are inserted straight into storage so past-due bills and
back-dated expenses can be set up without the create-time checks.
"""

import pytest
from datetime import datetime, timedelta

from fintrack.models.bill import Bill, BillFrequency, PaymentRecord
from fintrack.models.expense import Expense
from fintrack.models.goal import Goal, GoalStatus
from fintrack.models.query import BillQuery, ExpenseQuery, GoalQuery
from fintrack.queries import QueryExecutor, format_period_key
from fintrack.queries.filters import bill_filter, expense_filter
from fintrack.services.storage import (
    MongoBillStorage,
    MongoConnection,
    MongoExpenseStorage,
    MongoGoalStorage,
)


NOW = datetime(2024, 1, 15, 10, 0, 0)
OWNER = "65a000000000000000000001"
STRANGER = "65a000000000000000000002"


@pytest.fixture
def connection(database):
    return MongoConnection(database)


@pytest.fixture
def expenses(connection):
    return MongoExpenseStorage(connection)


@pytest.fixture
def bills(connection):
    return MongoBillStorage(connection)


@pytest.fixture
def goals(connection):
    return MongoGoalStorage(connection)


@pytest.fixture
def executor(expenses, bills, goals):
    return QueryExecutor(expenses, bills, goals)


def add_expense(storage, amount, date, category="food", owner_id=OWNER, **extra):
    fields = dict(
        user_id=owner_id,
        title="Expense",
        amount=amount,
        category=category,
        date=date,
    )
    fields.update(extra)
    return storage.insert(Expense(**fields))


def add_bill(storage, amount, due_date, owner_id=OWNER, **extra):
    fields = dict(
        user_id=owner_id,
        title="Bill",
        amount=amount,
        category="utilities",
        due_date=due_date,
        frequency=BillFrequency.MONTHLY,
    )
    fields.update(extra)
    return storage.insert(Bill(**fields))


class TestFilters:
    """Tests for query-to-filter translation."""

    def test_expense_filter(self):
        """Test each parameter maps onto its field."""
        query = ExpenseQuery(
            category="food",
            start_date=datetime(2024, 1, 1),
            min_amount=10,
            tags=["work"],
        )
        filters = expense_filter(query)
        assert filters["category"] == "food"
        assert filters["date"] == {"$gte": datetime(2024, 1, 1)}
        assert filters["amount"] == {"$gte": 10}
        assert filters["tags"] == {"$in": ["work"]}

    def test_search_is_literal(self):
        """Test regex characters in search text are escaped."""
        filters = expense_filter(ExpenseQuery(search="a.b*"))
        assert filters["$or"][0]["title"]["$regex"] == r"a\.b\*"

    def test_bill_overdue_and_due_soon_intersect(self):
        """Test both flags together narrow the due date from both sides."""
        filters = bill_filter(BillQuery(is_overdue=True, is_due_soon=True), NOW, 7)
        assert filters["is_active"] is True
        assert filters["due_date"] == {
            "$lt": NOW,
            "$gte": NOW,
            "$lte": NOW + timedelta(days=7),
        }


class TestListings:
    """Tests for paged listings."""

    def test_expense_pages_and_stats(self, executor, expenses):
        """Test the last page holds the remainder and stats cover everything."""
        for i in range(25):
            add_expense(expenses, 10, NOW - timedelta(days=i))
        add_expense(expenses, 500, NOW, owner_id=STRANGER)

        page = executor.list_expenses(OWNER, ExpenseQuery(page=3, limit=10))

        assert len(page.items) == 5
        assert page.pagination.pages == 3
        assert page.pagination.total == 25
        assert page.stats["total_expenses"] == 250
        assert page.stats["count"] == 25
        assert page.stats["max_expense"] == 10

    def test_expense_pages_exact_multiple(self, executor, expenses):
        """Test 20 records at 10 per page fill two pages and leave page 3 empty."""
        for i in range(20):
            add_expense(expenses, 10, NOW - timedelta(days=i))

        second = executor.list_expenses(OWNER, ExpenseQuery(page=2, limit=10))
        third = executor.list_expenses(OWNER, ExpenseQuery(page=3, limit=10))

        assert len(second.items) == 10
        assert second.pagination.pages == 2
        assert third.items == []
        assert third.pagination.total == 20

    def test_expense_sort_newest_first(self, executor, expenses):
        """Test the default order is by date, newest first."""
        add_expense(expenses, 1, datetime(2024, 1, 1), title="Old")
        add_expense(expenses, 2, datetime(2024, 1, 10), title="New")

        page = executor.list_expenses(OWNER, ExpenseQuery())
        assert [item["title"] for item in page.items] == ["New", "Old"]
        assert page.items[0]["formatted_amount"] == "2.00"

    def test_expense_search(self, executor, expenses):
        """Test search matches title or description, case-insensitively."""
        add_expense(expenses, 5, NOW, title="Morning coffee")
        add_expense(expenses, 5, NOW, title="Lunch", description="COFFEE and cake")
        add_expense(expenses, 5, NOW, title="Taxi")

        page = executor.list_expenses(OWNER, ExpenseQuery(search="coffee"))
        assert page.pagination.total == 2

    def test_empty_listing(self, executor):
        """Test an owner with nothing gets zeroed stats."""
        page = executor.list_expenses(OWNER, ExpenseQuery())
        assert page.items == []
        assert page.pagination.pages == 0
        assert page.stats["total_expenses"] == 0
        assert page.stats["count"] == 0

    def test_bill_listing_flags(self, executor, bills):
        """Test overdue filtering and the computed fields on each bill."""
        add_bill(bills, 40, NOW - timedelta(days=2))
        add_bill(bills, 60, NOW + timedelta(days=2))
        add_bill(bills, 80, NOW - timedelta(days=2), is_active=False)

        overdue = executor.list_bills(OWNER, BillQuery(is_overdue=True), now=NOW)
        assert [item["amount"] for item in overdue.items] == [40]
        assert overdue.items[0]["is_overdue"] is True
        assert overdue.stats["overdue_bills"] == 1
        assert overdue.stats["total_bills"] == 3
        assert "inactive_bills" not in overdue.stats

        soon = executor.list_bills(OWNER, BillQuery(is_due_soon=True), now=NOW)
        assert [item["amount"] for item in soon.items] == [60]
        assert soon.items[0]["is_due_soon"] is True

    def test_goal_listing(self, executor, goals):
        """Test status filtering and progress fields."""
        goals.insert(Goal(user_id=OWNER, title="A", target_amount=100, current_amount=50))
        goals.insert(Goal(
            user_id=OWNER, title="B", target_amount=100, current_amount=100,
            status=GoalStatus.COMPLETED,
        ))

        page = executor.list_goals(OWNER, GoalQuery(status="active"), now=NOW)
        assert [item["title"] for item in page.items] == ["A"]
        assert page.items[0]["progress_percentage"] == 50
        assert page.items[0]["remaining_amount"] == 50
        assert page.stats["total_goals"] == 2
        assert page.stats["completed_goals"] == 1
        assert "paused_goals" not in page.stats


class TestExpenseSummary:
    """Tests for the expense breakdown."""

    def test_by_month(self, executor, expenses):
        """Test monthly buckets, oldest first, and categories by total."""
        add_expense(expenses, 100, datetime(2024, 1, 5), category="food")
        add_expense(expenses, 50, datetime(2024, 1, 20), category="transport")
        add_expense(expenses, 30, datetime(2024, 2, 3), category="food")
        add_expense(expenses, 999, datetime(2024, 2, 3), owner_id=STRANGER)

        summary = executor.expense_summary(OWNER, "month")

        assert summary["period"] == "month"
        assert [s["period"] for s in summary["stats"]] == ["2024-01", "2024-02"]
        assert summary["stats"][0]["total_amount"] == 150
        assert summary["stats"][0]["count"] == 2
        assert summary["stats"][0]["average_amount"] == 75

        categories = summary["category_stats"]
        assert [c["category"] for c in categories] == ["food", "transport"]
        assert categories[0]["total_amount"] == 130

    def test_by_day(self, executor, expenses):
        """Test daily buckets use full dates as keys."""
        add_expense(expenses, 10, datetime(2024, 1, 5, 8))
        add_expense(expenses, 20, datetime(2024, 1, 5, 20))

        summary = executor.expense_summary(OWNER, "day")
        assert summary["stats"] == [
            {"period": "2024-01-05", "total_amount": 30, "count": 2, "average_amount": 15}
        ]

    @pytest.mark.parametrize("period,parts,expected", [
        ("day", {"year": 2024, "month": 1, "day": 5}, "2024-01-05"),
        ("week", {"year": 2024, "week": 3}, "2024-03"),
        ("month", {"year": 2024, "month": 11}, "2024-11"),
        ("year", {"year": 2024}, "2024"),
    ])
    def test_period_keys(self, period, parts, expected):
        """Test bucket keys are zero-padded."""
        assert format_period_key(period, parts) == expected


class TestBillSummaries:
    """Tests for bill statistics, upcoming and overdue views."""

    def test_upcoming_weekly_breakdown(self, executor, bills):
        """Test bills fall into 7-day buckets across a 30-day window."""
        add_bill(bills, 100, NOW + timedelta(days=1))
        add_bill(bills, 200, NOW + timedelta(days=8))
        add_bill(bills, 50, NOW + timedelta(days=29))
        add_bill(bills, 75, NOW + timedelta(days=40))
        add_bill(bills, 75, NOW + timedelta(days=3), is_active=False)
        add_bill(bills, 75, NOW - timedelta(days=1))

        result = executor.upcoming_bills(OWNER, now=NOW, window_days=30)

        assert [b["amount"] for b in result["bills"]] == [100, 200, 50]
        assert result["summary"] == {
            "total_bills": 3,
            "total_amount": 350,
            "average_amount": 116.67,
        }

        weeks = result["weekly_breakdown"]
        assert len(weeks) == 5
        assert [w["count"] for w in weeks] == [1, 1, 0, 0, 1]
        assert weeks[1]["total_amount"] == 200
        assert weeks[0]["start_date"] == NOW
        assert weeks[4]["end_date"] == NOW + timedelta(days=30)

    def test_upcoming_empty(self, executor):
        """Test an empty window still reports its weeks."""
        result = executor.upcoming_bills(OWNER, now=NOW, window_days=30)
        assert result["bills"] == []
        assert result["summary"]["average_amount"] == 0
        assert len(result["weekly_breakdown"]) == 5

    def test_overdue_with_late_fee(self, executor, bills):
        """Test late fees count once the grace period has passed."""
        add_bill(bills, 100, NOW - timedelta(days=10), late_fee=25, grace_period=5)
        add_bill(bills, 50, NOW - timedelta(days=2), late_fee=10, grace_period=5)

        result = executor.overdue_bills(OWNER, now=NOW)

        assert [b["days_overdue"] for b in result["bills"]] == [10, 2]
        assert [b["amount_due"] for b in result["bills"]] == [125, 50]
        assert result["summary"]["total_amount"] == 175
        assert result["summary"]["total_bills"] == 2

    def test_bill_summary(self, executor, bills):
        """Test totals, amount paid and the category/frequency breakdowns."""
        bill = add_bill(bills, 100, NOW + timedelta(days=5))
        add_bill(bills, 20, NOW - timedelta(days=1), category="subscription",
                 frequency=BillFrequency.WEEKLY)
        bills.apply_payment(
            OWNER, bill.id, BillFrequency.MONTHLY,
            PaymentRecord(payment_date=NOW, amount=100),
            {"last_paid": NOW},
        )

        summary = executor.bill_summary(OWNER, now=NOW)

        stats = summary["stats"]
        assert stats["total_bills"] == 2
        assert stats["active_bills"] == 2
        assert stats["overdue_bills"] == 1
        assert stats["total_amount"] == 120
        assert stats["total_paid"] == 100
        assert [c["category"] for c in summary["category_stats"]] == ["utilities", "subscription"]
        assert {f["frequency"] for f in summary["frequency_stats"]} == {"monthly", "weekly"}

    def test_bill_summary_empty(self, executor):
        """Test an owner without bills gets zeroes, not missing keys."""
        stats = executor.bill_summary(OWNER, now=NOW)["stats"]
        assert stats["total_bills"] == 0
        assert stats["total_paid"] == 0


class TestGoalSummary:
    """Tests for the goal breakdown."""

    def test_goal_summary(self, executor, goals):
        """Test counts per status and the average progress."""
        goals.insert(Goal(user_id=OWNER, title="A", target_amount=100, current_amount=50,
                          category="travel", priority="high"))
        goals.insert(Goal(user_id=OWNER, title="B", target_amount=200, current_amount=200,
                          status=GoalStatus.COMPLETED, priority="high"))
        goals.insert(Goal(user_id=OWNER, title="C", target_amount=100, current_amount=0,
                          status=GoalStatus.PAUSED))

        summary = executor.goal_summary(OWNER)

        stats = summary["stats"]
        assert stats["total_goals"] == 3
        assert stats["active_goals"] == 1
        assert stats["completed_goals"] == 1
        assert stats["paused_goals"] == 1
        assert stats["total_target_amount"] == 400
        assert stats["total_current_amount"] == 250
        assert stats["average_progress"] == 50

        priorities = {p["priority"]: p["count"] for p in summary["priority_stats"]}
        assert priorities == {"high": 2, "medium": 1}
        assert {c["category"] for c in summary["category_stats"]} == {"travel", "savings"}
