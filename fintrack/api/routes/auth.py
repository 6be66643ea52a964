"""Account routes: register, login, profile, password, activity, logout."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fintrack.api.dependencies import get_components, get_correlation_id, get_current_user
from fintrack.api.responses import success
from fintrack.models.user import PasswordChange, ProfileUpdate, User, UserLogin, UserRegister
from fintrack.orchestrator import AppComponents


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: UserRegister,
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    user, token = components.accounts.register(payload, correlation_id)
    return success("User created successfully", token=token, user=user.to_public())


@router.post("/login")
def login(
    payload: UserLogin,
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    user, token = components.accounts.login(payload, correlation_id=correlation_id)
    return success("Login successful", token=token, user=user.to_public())


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return success(user=user.to_public())


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    updated = components.accounts.update_profile(user.id, payload, correlation_id)
    return success("Profile updated successfully", user=updated.to_public())


@router.put("/change-password")
def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
):
    components.accounts.change_password(user.id, payload, correlation_id)
    return success("Password changed successfully")


@router.get("/activity")
def activity(
    limit: int = Query(default=50, ge=1, le=200),
    request_id: Optional[UUID] = Query(default=None),
    user: User = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
):
    events = components.accounts.activity(user.id, limit, request_id)
    return success(events=[event.to_response() for event in events])


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return success("Logout successful")
