"""
MongoDB Storage Implementation

DESIGN DECISION: Each aggregate (a bill with its payment history, a goal
with its milestones) is one document. Every lifecycle mutation is a single
conditional `find_one_and_update`, so no multi-document transaction is
ever needed.

TRADEOFFS:
- Money is stored as double. Fine for personal amounts, not for ledgers.
- Ids are ObjectIds in the database and hex strings everywhere else.
  A string that is not a valid ObjectId simply matches nothing.
"""

from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fintrack.config import get_settings
from fintrack.models.audit import AuditEvent
from fintrack.models.bill import Bill, BillFrequency, PaymentRecord
from fintrack.models.common import OwnedRecord, utcnow
from fintrack.models.expense import Expense
from fintrack.models.goal import Goal, GoalStatus
from fintrack.models.user import User
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    ConcurrentUpdateError,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoalStorageInterface,
    RecordStorageInterface,
    SortSpec,
    StorageError,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=OwnedRecord)


# =============================================================================
# DOCUMENT CONVERSION
# =============================================================================

def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a valid id string, None for anything else."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_storage_value(value: Any) -> Any:
    """Recursively convert enums, UUIDs and nested dicts/lists to BSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {key: to_storage_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_storage_value(item) for item in value]
    return value


def from_document(doc: dict[str, Any]) -> dict[str, Any]:
    """Turn a raw document into model input: `_id` becomes `id`, ObjectIds become strings."""
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    if isinstance(data.get("user_id"), ObjectId):
        data["user_id"] = str(data["user_id"])
    return data


def storage_operation(action: str) -> Callable:
    """Wrap driver errors in StorageError so callers never see pymongo types."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except StorageError:
                raise
            except PyMongoError as e:
                logger.error("storage_operation_failed", action=action, error=str(e))
                raise StorageError(f"Failed to {action}: {e}") from e
        return wrapper

    return decorator


# =============================================================================
# CONNECTION
# =============================================================================

class MongoConnection:
    """
    Process-wide MongoDB connection wrapper.

    Handles the lazy client, startup ping with retry, and index creation.
    Pass `database` to run against an existing handle (tests use mongomock).
    """

    def __init__(self, database: Optional[Database] = None):
        self._settings = get_settings().mongo
        self._client: Optional[MongoClient] = None
        self._database = database

    def get_database(self) -> Database:
        if self._database is None:
            self._client = MongoClient(
                self._settings.uri,
                serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
                tz_aware=False,
            )
            self._database = self._client[self._settings.database]
        return self._database

    def collection(self, name: str) -> Collection:
        return self.get_database()[name]

    @retry(
        retry=retry_if_exception_type(ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def ping(self) -> bool:
        """
        Check the server is reachable.

        Raises:
            ConnectionError: After three failed attempts
        """
        try:
            self.get_database().command("ping")
            return True
        except PyMongoError as e:
            raise ConnectionError(f"Failed to connect to MongoDB: {e}") from e

    @storage_operation("create indexes")
    def ensure_indexes(self) -> None:
        """Create the unique and per-owner indexes. Safe to call repeatedly."""
        s = self._settings
        users = self.collection(s.users_collection)
        users.create_index([("email", ASCENDING)], unique=True)
        users.create_index([("username", ASCENDING)], unique=True)

        expenses = self.collection(s.expenses_collection)
        expenses.create_index([("user_id", ASCENDING), ("date", DESCENDING)])
        expenses.create_index([("user_id", ASCENDING), ("category", ASCENDING)])

        bills = self.collection(s.bills_collection)
        bills.create_index([("user_id", ASCENDING), ("due_date", ASCENDING)])
        bills.create_index([("user_id", ASCENDING), ("is_active", ASCENDING)])

        goals = self.collection(s.goals_collection)
        goals.create_index([("user_id", ASCENDING), ("status", ASCENDING)])
        goals.create_index([("user_id", ASCENDING), ("deadline", ASCENDING)])

        audit = self.collection(s.audit_collection)
        audit.create_index([("user_id", ASCENDING), ("timestamp", DESCENDING)])
        audit.create_index([("user_id", ASCENDING), ("correlation_id", ASCENDING)])
        audit.create_index([("entity_type", ASCENDING), ("entity_id", ASCENDING)])

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


# =============================================================================
# USERS
# =============================================================================

class MongoUserStorage(UserStorageInterface):
    """Users collection."""

    def __init__(self, connection: MongoConnection):
        self._collection = connection.collection(get_settings().mongo.users_collection)

    def _to_user(self, doc: Optional[dict]) -> Optional[User]:
        return User(**from_document(doc)) if doc else None

    @staticmethod
    def _duplicate(error: DuplicateKeyError) -> DuplicateError:
        message = str(error)
        field = "username" if "username" in message else "email"
        return DuplicateError(f"Duplicate {field}", field=field)

    @storage_operation("create user")
    def create(self, user: User) -> User:
        doc = to_storage_value(user.model_dump(exclude={"id"}))
        try:
            result = self._collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise self._duplicate(e) from e
        return user.model_copy(update={"id": str(result.inserted_id)})

    @storage_operation("get user")
    def get_by_id(self, user_id: str) -> Optional[User]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        return self._to_user(self._collection.find_one({"_id": oid}))

    @storage_operation("get user")
    def get_by_email(self, email: str) -> Optional[User]:
        return self._to_user(self._collection.find_one({"email": email.lower()}))

    @storage_operation("get user")
    def get_by_username(self, username: str) -> Optional[User]:
        return self._to_user(self._collection.find_one({"username": username}))

    @storage_operation("update user")
    def update(self, user_id: str, changes: dict[str, Any]) -> Optional[User]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        update = {"$set": {**to_storage_value(changes), "updated_at": utcnow()}}
        try:
            doc = self._collection.find_one_and_update(
                {"_id": oid}, update, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise self._duplicate(e) from e
        return self._to_user(doc)

    @storage_operation("update password")
    def set_password(self, user_id: str, password_hash: str) -> bool:
        oid = parse_object_id(user_id)
        if oid is None:
            return False
        result = self._collection.update_one(
            {"_id": oid},
            {"$set": {"password_hash": password_hash, "updated_at": utcnow()}},
        )
        return result.matched_count == 1

    @storage_operation("record login")
    def touch_last_login(self, user_id: str, when) -> None:
        oid = parse_object_id(user_id)
        if oid is not None:
            self._collection.update_one({"_id": oid}, {"$set": {"last_login": when}})


# =============================================================================
# OWNED RECORDS
# =============================================================================

class MongoRecordStorage(RecordStorageInterface[RecordT]):
    """
    Owner-scoped storage for one collection of OwnedRecord documents.

    Subclasses set `model` and `collection_setting`.
    """

    model: type[RecordT]
    collection_setting: str
    entity_name: str = "record"

    def __init__(self, connection: MongoConnection):
        name = getattr(get_settings().mongo, self.collection_setting)
        self._collection = connection.collection(name)

    def _to_record(self, doc: Optional[dict]) -> Optional[RecordT]:
        return self.model(**from_document(doc)) if doc else None

    @staticmethod
    def _owner_filter(owner_id: str, record_id: Optional[str] = None) -> Optional[dict]:
        """Base filter for one owner (and optionally one record). None if an id is malformed."""
        owner = parse_object_id(owner_id)
        if owner is None:
            return None
        query: dict[str, Any] = {"user_id": owner}
        if record_id is not None:
            oid = parse_object_id(record_id)
            if oid is None:
                return None
            query["_id"] = oid
        return query

    def _scoped(self, owner_id: str, filters: Optional[dict]) -> Optional[dict]:
        base = self._owner_filter(owner_id)
        if base is None:
            return None
        return {**to_storage_value(filters or {}), **base}

    def _update_one(self, query: Optional[dict], update: dict) -> Optional[RecordT]:
        if query is None:
            return None
        update.setdefault("$set", {})["updated_at"] = utcnow()
        doc = self._collection.find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )
        return self._to_record(doc)

    @storage_operation("insert record")
    def insert(self, record: RecordT) -> RecordT:
        owner = parse_object_id(record.user_id)
        if owner is None:
            raise StorageError(f"Cannot store {self.entity_name} without a valid owner")
        doc = to_storage_value(record.model_dump(exclude={"id"}))
        doc["user_id"] = owner
        result = self._collection.insert_one(doc)
        return record.model_copy(update={"id": str(result.inserted_id)})

    @storage_operation("get record")
    def get(self, owner_id: str, record_id: str) -> Optional[RecordT]:
        query = self._owner_filter(owner_id, record_id)
        if query is None:
            return None
        return self._to_record(self._collection.find_one(query))

    @storage_operation("list records")
    def find(
        self,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[RecordT]:
        query = self._scoped(owner_id, filters)
        if query is None:
            return []

        order = list(sort or [])
        if not any(field == "_id" for field, _ in order):
            order.append(("_id", ASCENDING))

        cursor = self._collection.find(query).sort(order).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_record(doc) for doc in cursor]

    @storage_operation("count records")
    def count(self, owner_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        query = self._scoped(owner_id, filters)
        if query is None:
            return 0
        return self._collection.count_documents(query)

    @storage_operation("update record")
    def update(
        self,
        owner_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> Optional[RecordT]:
        changes = {k: v for k, v in changes.items() if k not in ("id", "_id", "user_id")}
        return self._update_one(
            self._owner_filter(owner_id, record_id),
            {"$set": to_storage_value(changes)},
        )

    @storage_operation("delete record")
    def delete(self, owner_id: str, record_id: str) -> bool:
        query = self._owner_filter(owner_id, record_id)
        if query is None:
            return False
        return self._collection.delete_one(query).deleted_count == 1

    @storage_operation("aggregate records")
    def aggregate(self, owner_id: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        base = self._owner_filter(owner_id)
        if base is None:
            return []
        stages = [{"$match": base}] + to_storage_value(pipeline)
        return list(self._collection.aggregate(stages))


class MongoExpenseStorage(MongoRecordStorage[Expense], ExpenseStorageInterface):
    model = Expense
    collection_setting = "expenses_collection"
    entity_name = "expense"


class MongoBillStorage(MongoRecordStorage[Bill], BillStorageInterface):
    model = Bill
    collection_setting = "bills_collection"
    entity_name = "bill"

    @storage_operation("record bill payment")
    def apply_payment(
        self,
        owner_id: str,
        bill_id: str,
        expected_frequency: BillFrequency,
        payment: PaymentRecord,
        changes: dict[str, Any],
    ) -> Optional[Bill]:
        query = self._owner_filter(owner_id, bill_id)
        if query is None:
            return None

        guarded = {**query, "frequency": BillFrequency(expected_frequency).value}
        updated = self._update_one(guarded, {
            "$push": {"payment_history": to_storage_value(payment.model_dump())},
            "$set": to_storage_value(changes),
        })
        if updated is not None:
            return updated

        if self._collection.find_one(query, {"_id": 1}) is not None:
            raise ConcurrentUpdateError(f"Bill {bill_id} changed while being paid")
        return None


class MongoGoalStorage(MongoRecordStorage[Goal], GoalStorageInterface):
    model = Goal
    collection_setting = "goals_collection"
    entity_name = "goal"

    @storage_operation("add goal funds")
    def increment_amount(self, owner_id: str, goal_id: str, amount: float) -> Optional[Goal]:
        return self._update_one(
            self._owner_filter(owner_id, goal_id),
            {"$inc": {"current_amount": amount}},
        )

    @storage_operation("withdraw goal funds")
    def withdraw_amount(self, owner_id: str, goal_id: str, amount: float) -> Optional[Goal]:
        query = self._owner_filter(owner_id, goal_id)
        if query is None:
            return None
        query["current_amount"] = {"$gte": amount}
        return self._update_one(query, {"$inc": {"current_amount": -amount}})

    @storage_operation("complete goal")
    def mark_completed(
        self,
        owner_id: str,
        goal_id: str,
        target_amount: float,
        completed_at,
    ) -> Optional[Goal]:
        query = self._owner_filter(owner_id, goal_id)
        if query is None:
            return None
        query.update({
            "status": {"$ne": GoalStatus.COMPLETED.value},
            "target_amount": target_amount,
            "current_amount": {"$gte": target_amount},
        })
        return self._update_one(query, {"$set": {
            "status": GoalStatus.COMPLETED.value,
            "completed_at": completed_at,
        }})

    @storage_operation("change goal status")
    def set_status(
        self,
        owner_id: str,
        goal_id: str,
        status: GoalStatus,
        completed_at=None,
        minimum_amount: Optional[float] = None,
    ) -> Optional[Goal]:
        changes: dict[str, Any] = {"status": GoalStatus(status).value}
        if completed_at is not None:
            changes["completed_at"] = completed_at
        update: dict[str, Any] = {"$set": changes}
        if minimum_amount is not None:
            update["$max"] = {"current_amount": minimum_amount}
        return self._update_one(self._owner_filter(owner_id, goal_id), update)


# =============================================================================
# AUDIT
# =============================================================================

class MongoAuditStorage(AuditStorageInterface):
    """Append-only audit collection."""

    def __init__(self, connection: MongoConnection):
        self._collection = connection.collection(get_settings().mongo.audit_collection)

    @staticmethod
    def _event_to_document(event: AuditEvent) -> dict:
        doc = to_storage_value(event.model_dump())
        doc["_id"] = doc.pop("event_id")
        return doc

    @staticmethod
    def _document_to_event(doc: dict) -> AuditEvent:
        data = dict(doc)
        data["event_id"] = data.pop("_id")
        return AuditEvent(**data)

    @storage_operation("write audit event")
    def append_event(self, event: AuditEvent) -> bool:
        self._collection.insert_one(self._event_to_document(event))
        return True

    def _find(self, query: dict, direction: int, limit: int = 0) -> list[AuditEvent]:
        cursor = self._collection.find(query).sort("timestamp", direction).limit(limit)
        return [self._document_to_event(doc) for doc in cursor]

    @storage_operation("read audit events")
    def get_events_by_correlation_id(
        self,
        user_id: str,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return self._find(
            {"user_id": user_id, "correlation_id": str(correlation_id)}, ASCENDING
        )

    @storage_operation("read audit events")
    def get_events_by_entity(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return self._find(
            {"user_id": user_id, "entity_type": entity_type, "entity_id": entity_id},
            ASCENDING,
        )

    @storage_operation("read audit events")
    def get_recent_events(self, user_id: str, limit: int = 50) -> list[AuditEvent]:
        return self._find({"user_id": user_id}, DESCENDING, limit)
