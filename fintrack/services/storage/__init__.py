"""
Storage Services Package

Provides abstract interfaces and the MongoDB implementation for data storage.
"""

from fintrack.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    ConcurrentUpdateError,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoalStorageInterface,
    RecordStorageInterface,
    StorageError,
    UserStorageInterface,
)
from fintrack.services.storage.mongo import (
    MongoAuditStorage,
    MongoBillStorage,
    MongoConnection,
    MongoExpenseStorage,
    MongoGoalStorage,
    MongoUserStorage,
    parse_object_id,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BillStorageInterface",
    "ExpenseStorageInterface",
    "GoalStorageInterface",
    "RecordStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConcurrentUpdateError",
    "ConnectionError",
    "DuplicateError",
    "StorageError",
    # MongoDB implementation
    "MongoAuditStorage",
    "MongoBillStorage",
    "MongoConnection",
    "MongoExpenseStorage",
    "MongoGoalStorage",
    "MongoUserStorage",
    "parse_object_id",
]
