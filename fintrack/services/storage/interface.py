"""
Storage contracts for accounts, owned records and the audit trail.

Flows and queries only talk to these interfaces; the pymongo
implementation lives in mongo.py and tests bind it to mongomock.

Every owned-record method takes the owner id as a required argument and
adds it to the filter itself. A record that belongs to someone else is
therefore reported exactly like one that does not exist.

Filters and pipelines are MongoDB query documents built by the query
layer; storage only prepends the owner constraint.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar
from uuid import UUID

from fintrack.models.audit import AuditEvent
from fintrack.models.bill import Bill, BillFrequency, PaymentRecord
from fintrack.models.common import OwnedRecord
from fintrack.models.expense import Expense
from fintrack.models.goal import Goal, GoalStatus
from fintrack.models.user import User


RecordT = TypeVar("RecordT", bound=OwnedRecord)

SortSpec = list[tuple[str, int]]


class UserStorageInterface(ABC):
    """Account storage. Users are never hard-deleted."""

    @abstractmethod
    def create(self, user: User) -> User:
        """
        Insert a new user.

        Returns:
            The stored user with its id assigned

        Raises:
            DuplicateError: If the email or username is taken
        """
        pass

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    def update(self, user_id: str, changes: dict[str, Any]) -> Optional[User]:
        """
        Apply field changes and return the updated user.

        Raises:
            DuplicateError: If a changed username collides with another user
        """
        pass

    @abstractmethod
    def set_password(self, user_id: str, password_hash: str) -> bool:
        pass

    @abstractmethod
    def touch_last_login(self, user_id: str, when: datetime) -> None:
        pass


class RecordStorageInterface(ABC, Generic[RecordT]):
    """
    Owner-scoped CRUD and aggregation for one record collection.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def insert(self, record: RecordT) -> RecordT:
        """
        Save a new record. `record.user_id` must be set.

        Returns:
            The stored record with its id assigned
        """
        pass

    @abstractmethod
    def get(self, owner_id: str, record_id: str) -> Optional[RecordT]:
        """
        Retrieve a record by id.

        Returns:
            The record if it exists and belongs to owner_id, None otherwise
        """
        pass

    @abstractmethod
    def find(
        self,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[RecordT]:
        """
        List the owner's records matching filters.

        Ties in the sort order are broken by insertion order,
        so paging is deterministic. A limit of 0 means no limit.
        """
        pass

    @abstractmethod
    def count(self, owner_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        pass

    @abstractmethod
    def update(
        self,
        owner_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> Optional[RecordT]:
        """
        Apply field changes and bump updated_at.

        Returns:
            The updated record, or None if not found for this owner
        """
        pass

    @abstractmethod
    def delete(self, owner_id: str, record_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    def aggregate(self, owner_id: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Run an aggregation pipeline over the owner's records only.
        """
        pass


class ExpenseStorageInterface(RecordStorageInterface[Expense]):
    """Expense storage. Plain CRUD, no lifecycle operations."""


class BillStorageInterface(RecordStorageInterface[Bill]):
    """Bill storage with the atomic payment operation."""

    @abstractmethod
    def apply_payment(
        self,
        owner_id: str,
        bill_id: str,
        expected_frequency: BillFrequency,
        payment: PaymentRecord,
        changes: dict[str, Any],
    ) -> Optional[Bill]:
        """
        Append a payment and apply its field changes in one update.

        The update only matches while the bill still has
        `expected_frequency`, the frequency the changes were computed from.

        Returns:
            The updated bill, or None if not found for this owner

        Raises:
            ConcurrentUpdateError: The bill exists but its frequency changed
        """
        pass


class GoalStorageInterface(RecordStorageInterface[Goal]):
    """Goal storage with the atomic funding operations."""

    @abstractmethod
    def increment_amount(self, owner_id: str, goal_id: str, amount: float) -> Optional[Goal]:
        """Atomically add `amount` to current_amount and return the result."""
        pass

    @abstractmethod
    def withdraw_amount(self, owner_id: str, goal_id: str, amount: float) -> Optional[Goal]:
        """
        Atomically subtract `amount` if current_amount covers it.

        Returns:
            The updated goal, or None when the goal is missing or the
            balance is too small. Nothing is written in either case.
        """
        pass

    @abstractmethod
    def mark_completed(
        self,
        owner_id: str,
        goal_id: str,
        target_amount: float,
        completed_at: datetime,
    ) -> Optional[Goal]:
        """
        Move a funded goal to completed.

        Only matches a goal that is not yet completed, still has
        `target_amount` and has current_amount >= target_amount, so
        concurrent callers complete a goal at most once.

        Returns:
            The completed goal, or None if this call did not complete it
        """
        pass

    @abstractmethod
    def set_status(
        self,
        owner_id: str,
        goal_id: str,
        status: GoalStatus,
        completed_at: Optional[datetime] = None,
        minimum_amount: Optional[float] = None,
    ) -> Optional[Goal]:
        """
        Set the status, and optionally completed_at.

        With `minimum_amount`, current_amount is raised to at least that
        value in the same update; a larger balance is left as is.
        """
        pass


class AuditStorageInterface(ABC):
    """Append-only event log. Events are written once and never changed."""

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one event.

        Returns:
            True once the event is stored

        Raises:
            StorageError: If the write fails
        """
        pass

    # Readers are scoped to the user the events were raised for, like
    # every owned-record read.

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        user_id: str,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events raised while serving one request, oldest first."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """History of one expense, bill or goal, oldest first."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        """The user's latest events, newest first."""
        pass


class StorageError(Exception):
    """Raised when the document store rejects or fails an operation."""
    pass


class DuplicateError(StorageError):
    """A unique index (email, username) rejected the write."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ConnectionError(StorageError):
    """The MongoDB server could not be reached."""
    pass


class ConcurrentUpdateError(StorageError):
    """A conditional update lost a race with another writer."""
    pass
