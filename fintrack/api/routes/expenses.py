"""Expense routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fintrack.api.dependencies import get_components, get_correlation_id, get_current_user
from fintrack.api.responses import success
from fintrack.models.expense import ExpenseCreate, ExpenseUpdate
from fintrack.models.query import ExpenseQuery, SummaryPeriod
from fintrack.models.user import User
from fintrack.orchestrator import AppComponents


router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.get("")
def list_expenses(
    query: Annotated[ExpenseQuery, Query()],
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    page = components.queries.list_expenses(user.id, query)
    return success(expenses=page.items, pagination=page.pagination, stats=page.stats)


@router.get("/stats/summary")
def expense_summary(
    period: SummaryPeriod = Query(default="month"),
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    return success(**components.queries.expense_summary(user.id, period))


@router.get("/{expense_id}")
def get_expense(
    expense_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    expense = components.expenses.get(user.id, expense_id)
    return success(expense=expense.to_response())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: ExpenseCreate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    expense = components.expenses.create(user.id, payload, correlation_id=correlation_id)
    return success("Expense created successfully", expense=expense.to_response())


@router.put("/{expense_id}")
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    expense = components.expenses.update(
        user.id, expense_id, payload, correlation_id=correlation_id
    )
    return success("Expense updated successfully", expense=expense.to_response())


@router.delete("/{expense_id}")
def delete_expense(
    expense_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    components.expenses.delete(user.id, expense_id, correlation_id)
    return success("Expense deleted successfully")


@router.get("/{expense_id}/history")
def expense_history(
    expense_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    events = components.expenses.history(user.id, expense_id)
    return success(events=[event.to_response() for event in events])
