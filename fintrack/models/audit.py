"""
Audit Trail Models

One AuditEvent is written for every change to a user's money records,
every login attempt and every unexpected server error. Events are only
ever appended; nothing updates or removes them.

Events raised while serving one request share a correlation id, so a
single mark-paid or add-funds call can be read back as one story.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from fintrack.models.common import utcnow


class AuditEventType(str, Enum):
    """What happened."""
    # Accounts
    USER_REGISTERED = "user_registered"
    USER_LOGGED_IN = "user_logged_in"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    AUTH_FAILED = "auth_failed"

    # Records
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Lifecycle transitions
    BILL_PAID = "bill_paid"
    BILL_DEACTIVATED = "bill_deactivated"
    GOAL_FUNDS_ADDED = "goal_funds_added"
    GOAL_FUNDS_WITHDRAWN = "goal_funds_withdrawn"
    GOAL_COMPLETED = "goal_completed"
    GOAL_STATUS_CHANGED = "goal_status_changed"

    # Server
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Maps onto the log level the event is written at."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry in the audit trail.

    `entity_type` / `entity_id` point at the user, expense, bill or goal
    the event is about; both are None for server errors.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utcnow)

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    user_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    # Shared by every event raised while serving one request
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = Field(
        default=False,
        description="False for events the system raised on its own (completion, errors)"
    )

    def to_log_dict(self) -> dict:
        """Flat, JSON-safe form for the structured log."""
        return self.model_dump(mode="json")

    def to_response(self) -> dict:
        """What a user sees of their own trail."""
        return self.model_dump(
            mode="json",
            include={
                "event_id", "timestamp", "event_type", "entity_type",
                "entity_id", "correlation_id", "description", "details",
            },
        )


class AuditEventBuilder:
    """
    Constructors for the events the flows raise.

    Example:
        event = AuditEventBuilder.bill_paid(user_id, bill_id, 120.0, False, next_due)
        audit_logger.log(event)
    """

    @staticmethod
    def user_registered(
        user_id: str,
        username: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"User registered: {username}",
            details={"username": username},
            is_user_action=True,
        )

    @staticmethod
    def user_logged_in(
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGGED_IN,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User logged in",
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Profile updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def password_changed(
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_CHANGED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Password changed",
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(
        reason: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Authentication failed: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def record_created(
        user_id: str,
        entity_type: str,
        entity_id: str,
        title: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} created: {title}",
            details={"title": title},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        user_id: str,
        entity_type: str,
        entity_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        user_id: str,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def bill_paid(
        user_id: str,
        bill_id: str,
        amount: float,
        deactivated: bool,
        next_due: Optional[datetime],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DEACTIVATED if deactivated else AuditEventType.BILL_PAID,
            user_id=user_id,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=(
                f"One-time bill paid ({amount:.2f}) and closed"
                if deactivated
                else f"Bill paid ({amount:.2f})"
            ),
            details={
                "amount": amount,
                "next_due_date": next_due.isoformat() if next_due else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def funds_moved(
        user_id: str,
        goal_id: str,
        amount: float,
        withdrawn: bool,
        balance: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.GOAL_FUNDS_WITHDRAWN if withdrawn else AuditEventType.GOAL_FUNDS_ADDED
            ),
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"{'Withdrew' if withdrawn else 'Added'} {amount:.2f}",
            details={"amount": amount, "current_amount": balance},
            is_user_action=True,
        )

    @staticmethod
    def goal_completed(
        user_id: str,
        goal_id: str,
        current_amount: float,
        target_amount: float,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Goal reached its target",
            details={"current_amount": current_amount, "target_amount": target_amount},
        )

    @staticmethod
    def goal_status_changed(
        user_id: str,
        goal_id: str,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_STATUS_CHANGED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal status changed: {old_status} -> {new_status}",
            details={"old_status": old_status, "new_status": new_status},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
