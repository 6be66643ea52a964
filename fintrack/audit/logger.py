"""
Audit Logger

Writes each AuditEvent twice: as a structured log line through structlog
and, when a storage backend is attached, as a document in the audit
collection. A failed audit write is logged and reported to the caller as
False; the request that raised the event carries on.
"""

import logging
import sys
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from fintrack.services.storage.interface import AuditStorageInterface, StorageError


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog through stdlib logging as one JSON object per line."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Records audit events for the flows.

    Pass `storage=None` to keep events in the log stream only.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("fintrack.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Emit the event at its severity's level, then persist it.

        Returns False only when the storage write fails.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # Reads go straight to storage. A local-only logger has nothing to return.

    def recent_events(self, user_id: str, limit: int = 50) -> list[AuditEvent]:
        if not self._storage:
            return []
        return self._storage.get_recent_events(user_id, limit)

    def request_events(self, user_id: str, correlation_id: UUID) -> list[AuditEvent]:
        if not self._storage:
            return []
        return self._storage.get_events_by_correlation_id(user_id, correlation_id)

    def entity_history(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        if not self._storage:
            return []
        return self._storage.get_events_by_entity(user_id, entity_type, entity_id)

    def log_user_registered(
        self,
        user_id: str,
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.user_registered(user_id, username, correlation_id))

    def log_user_logged_in(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.user_logged_in(user_id, correlation_id))

    def log_profile_updated(
        self,
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.profile_updated(user_id, fields, correlation_id))

    def log_password_changed(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.password_changed(user_id, correlation_id))

    def log_auth_failed(
        self,
        reason: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected login or token."""
        self.log(AuditEventBuilder.auth_failed(reason, user_id, correlation_id))

    def log_record_created(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_created(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            title=title,
            correlation_id=correlation_id,
        ))

    def log_record_updated(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_updated(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    def log_record_deleted(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.record_deleted(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    def log_bill_paid(
        self,
        user_id: str,
        bill_id: str,
        amount: float,
        deactivated: bool,
        next_due: Optional[datetime],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payment against a bill."""
        self.log(AuditEventBuilder.bill_paid(
            user_id=user_id,
            bill_id=bill_id,
            amount=amount,
            deactivated=deactivated,
            next_due=next_due,
            correlation_id=correlation_id,
        ))

    def log_funds_moved(
        self,
        user_id: str,
        goal_id: str,
        amount: float,
        withdrawn: bool,
        balance: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.funds_moved(
            user_id=user_id,
            goal_id=goal_id,
            amount=amount,
            withdrawn=withdrawn,
            balance=balance,
            correlation_id=correlation_id,
        ))

    def log_goal_completed(
        self,
        user_id: str,
        goal_id: str,
        current_amount: float,
        target_amount: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.goal_completed(
            user_id=user_id,
            goal_id=goal_id,
            current_amount=current_amount,
            target_amount=target_amount,
            correlation_id=correlation_id,
        ))

    def log_goal_status_changed(
        self,
        user_id: str,
        goal_id: str,
        old_status: str,
        new_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.goal_status_changed(
            user_id=user_id,
            goal_id=goal_id,
            old_status=old_status,
            new_status=new_status,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """Fresh id for a request that arrived without an X-Request-ID header."""
    return uuid4()
