"""Goal routes, including the funding and status transitions."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fintrack.api.dependencies import get_components, get_correlation_id, get_current_user
from fintrack.api.responses import success
from fintrack.models.goal import FundsRequest, GoalCreate, GoalUpdate, StatusChange
from fintrack.models.query import GoalQuery
from fintrack.models.user import User
from fintrack.orchestrator import AppComponents


router = APIRouter(prefix="/api/goals", tags=["goals"])


@router.get("")
def list_goals(
    query: Annotated[GoalQuery, Query()],
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    page = components.queries.list_goals(user.id, query)
    return success(goals=page.items, pagination=page.pagination, stats=page.stats)


@router.get("/stats/summary")
def goal_summary(
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    return success(**components.queries.goal_summary(user.id))


@router.get("/{goal_id}")
def get_goal(
    goal_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    return success(goal=components.goals.get(user.id, goal_id).to_response())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    payload: GoalCreate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    goal = components.goals.create(user.id, payload, correlation_id=correlation_id)
    return success("Goal created successfully", goal=goal.to_response())


@router.put("/{goal_id}")
def update_goal(
    goal_id: str,
    payload: GoalUpdate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    goal = components.goals.update(user.id, goal_id, payload, correlation_id=correlation_id)
    return success("Goal updated successfully", goal=goal.to_response())


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    components.goals.delete(user.id, goal_id, correlation_id)
    return success("Goal deleted successfully")


@router.patch("/{goal_id}/add-funds")
def add_funds(
    goal_id: str,
    payload: FundsRequest,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    goal = components.goals.add_funds(
        user.id, goal_id, payload.amount, correlation_id=correlation_id
    )
    return success(
        f"Added {payload.amount:.2f} to goal successfully",
        goal=goal.to_response(),
    )


@router.patch("/{goal_id}/withdraw-funds")
def withdraw_funds(
    goal_id: str,
    payload: FundsRequest,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    goal = components.goals.withdraw_funds(user.id, goal_id, payload.amount, correlation_id)
    return success(
        f"Withdrew {payload.amount:.2f} from goal successfully",
        goal=goal.to_response(),
    )


@router.patch("/{goal_id}/status")
def change_status(
    goal_id: str,
    payload: StatusChange,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    goal = components.goals.set_status(
        user.id, goal_id, payload.status, correlation_id=correlation_id
    )
    return success(
        f"Goal status updated to {payload.status.value}",
        goal=goal.to_response(),
    )


@router.get("/{goal_id}/history")
def goal_history(
    goal_id: str,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    events = components.goals.history(user.id, goal_id)
    return success(events=[event.to_response() for event in events])
