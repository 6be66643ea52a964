"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.common import (
    OwnedRecord,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from fintrack.models.user import (
    PasswordChange,
    ProfileUpdate,
    User,
    UserLogin,
    UserRegister,
)
from fintrack.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseCreate,
    ExpensePaymentMethod,
    ExpenseUpdate,
)
from fintrack.models.bill import (
    Bill,
    BillCategory,
    BillCreate,
    BillFrequency,
    BillPaymentMethod,
    BillUpdate,
    MarkPaidRequest,
    PaymentRecord,
    add_months,
    next_due_date,
)
from fintrack.models.goal import (
    FundsRequest,
    Goal,
    GoalCategory,
    GoalCreate,
    GoalPriority,
    GoalStatus,
    GoalUpdate,
    Milestone,
    StatusChange,
)
from fintrack.models.query import (
    BillQuery,
    ExpenseQuery,
    GoalQuery,
    PageResult,
    Pagination,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Common
    "OwnedRecord",
    "ValidationIssue",
    "ValidationResult",
    "utcnow",
    # User models
    "PasswordChange",
    "ProfileUpdate",
    "User",
    "UserLogin",
    "UserRegister",
    # Expense models
    "Expense",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpensePaymentMethod",
    "ExpenseUpdate",
    # Bill models
    "Bill",
    "BillCategory",
    "BillCreate",
    "BillFrequency",
    "BillPaymentMethod",
    "BillUpdate",
    "MarkPaidRequest",
    "PaymentRecord",
    "add_months",
    "next_due_date",
    # Goal models
    "FundsRequest",
    "Goal",
    "GoalCategory",
    "GoalCreate",
    "GoalPriority",
    "GoalStatus",
    "GoalUpdate",
    "Milestone",
    "StatusChange",
    # Query models
    "BillQuery",
    "ExpenseQuery",
    "GoalQuery",
    "PageResult",
    "Pagination",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
