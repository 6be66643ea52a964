"""Bill routes, including mark-paid and the upcoming/overdue summaries."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from fintrack.api.dependencies import get_components, get_correlation_id, get_current_user
from fintrack.api.responses import success
from fintrack.models.bill import BillCreate, BillUpdate, MarkPaidRequest
from fintrack.models.common import utcnow
from fintrack.models.query import BillQuery
from fintrack.models.user import User
from fintrack.orchestrator import AppComponents


router = APIRouter(prefix="/api/bills", tags=["bills"])


@router.get("")
def list_bills(
    query: Annotated[BillQuery, Query()],
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    page = components.queries.list_bills(user.id, query)
    return success(bills=page.items, pagination=page.pagination, stats=page.stats)


@router.get("/upcoming/summary")
def upcoming_bills(
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    result = components.queries.upcoming_bills(user.id)
    return success(
        upcoming_bills=result["bills"],
        summary=result["summary"],
        weekly_breakdown=result["weekly_breakdown"],
    )


@router.get("/overdue/summary")
def overdue_bills(
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    result = components.queries.overdue_bills(user.id)
    return success(overdue_bills=result["bills"], summary=result["summary"])


@router.get("/stats/summary")
def bill_summary(
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    return success(**components.queries.bill_summary(user.id))


@router.get("/{bill_id}")
def get_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    bill = components.bills.get(user.id, bill_id)
    return success(bill=bill.to_response())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_bill(
    payload: BillCreate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    bill = components.bills.create(user.id, payload, correlation_id=correlation_id)
    return success("Bill created successfully", bill=bill.to_response())


@router.put("/{bill_id}")
def update_bill(
    bill_id: str,
    payload: BillUpdate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    bill = components.bills.update(user.id, bill_id, payload, correlation_id=correlation_id)
    return success("Bill updated successfully", bill=bill.to_response())


@router.delete("/{bill_id}")
def delete_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    components.bills.delete(user.id, bill_id, correlation_id)
    return success("Bill deleted successfully")


@router.patch("/{bill_id}/mark-paid")
def mark_paid(
    bill_id: str,
    payload: Annotated[Optional[MarkPaidRequest], Body()] = None,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    now = utcnow()
    bill = components.bills.mark_paid(
        user.id, bill_id, payload, now=now, correlation_id=correlation_id
    )
    return success("Bill marked as paid successfully", bill=bill.to_response(now))


@router.get("/{bill_id}/history")
def bill_history(
    bill_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    events = components.bills.history(user.id, bill_id)
    return success(events=[event.to_response() for event in events])
