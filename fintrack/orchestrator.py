"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Accounts (register → login → token → identity)
2. Expenses (validate → store)
3. Bills (validate → store → mark paid → recur)
4. Goals (validate → store → fund → complete)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every record operation is scoped to the authenticated owner
- Nothing is stored before both validation stages pass
- Every lifecycle transition is a single conditional storage update
- Every step is audited

Flows take an explicit `now` where the outcome depends on the clock,
so behavior is reproducible.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from pymongo.database import Database
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fintrack.audit import AuditLogger, create_correlation_id
from fintrack.errors import AuthFailure, BusinessRuleViolation, InsufficientFunds, NotFound
from fintrack.models.audit import AuditEvent
from fintrack.models.bill import Bill, BillCreate, BillUpdate, MarkPaidRequest
from fintrack.models.common import utcnow
from fintrack.models.expense import Expense, ExpenseCreate, ExpenseUpdate
from fintrack.models.goal import Goal, GoalCreate, GoalStatus, GoalUpdate
from fintrack.models.user import PasswordChange, ProfileUpdate, User, UserLogin, UserRegister
from fintrack.queries import QueryExecutor
from fintrack.services.auth import (
    ACCOUNT_DEACTIVATED,
    UNKNOWN_USER,
    PasswordHasher,
    TokenService,
)
from fintrack.services.storage import (
    BillStorageInterface,
    ConcurrentUpdateError,
    DuplicateError,
    ExpenseStorageInterface,
    GoalStorageInterface,
    MongoAuditStorage,
    MongoBillStorage,
    MongoConnection,
    MongoExpenseStorage,
    MongoGoalStorage,
    MongoUserStorage,
    UserStorageInterface,
)
from fintrack.validation import RecordValidator


INVALID_CREDENTIALS = "Invalid email or password"
LOGIN_DEACTIVATED = "Account is deactivated. Please contact support."
EMAIL_TAKEN = "Email already registered"
USERNAME_TAKEN = "Username already taken"
WRONG_PASSWORD = "Current password is incorrect"


def _changes(payload) -> dict:
    """Fields the client actually sent, without explicit nulls."""
    return payload.model_dump(exclude_unset=True, exclude_none=True)


class AccountFlow:
    """
    Orchestrates registration, login and the token gate.

    Login failures use one generic message so callers cannot tell a
    wrong password from an unknown email.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        hasher: Optional[PasswordHasher] = None,
        tokens: Optional[TokenService] = None,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = user_storage
        self._hasher = hasher or PasswordHasher()
        self._tokens = tokens or TokenService()
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def register(
        self,
        payload: UserRegister,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[User, str]:
        """
        Create an account and sign the user in.

        Returns:
            (user, access_token)
        """
        correlation_id = correlation_id or create_correlation_id()
        self._validator.enforce(self._validator.check_password(payload.password))

        if self._users.get_by_email(payload.email):
            raise BusinessRuleViolation(EMAIL_TAKEN)
        if self._users.get_by_username(payload.username):
            raise BusinessRuleViolation(USERNAME_TAKEN)

        user = User(
            username=payload.username,
            email=payload.email,
            password_hash=self._hasher.hash(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        try:
            user = self._users.create(user)
        except DuplicateError as e:
            # Lost a race with a concurrent registration
            raise BusinessRuleViolation(USERNAME_TAKEN if e.field == "username" else EMAIL_TAKEN)

        self._audit_logger.log_user_registered(user.id, user.username, correlation_id)
        return user, self._tokens.issue(user.id)

    def login(
        self,
        payload: UserLogin,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[User, str]:
        now = now or utcnow()
        correlation_id = correlation_id or create_correlation_id()

        user = self._users.get_by_email(payload.email)
        if user is None:
            self._audit_logger.log_auth_failed("unknown email", correlation_id=correlation_id)
            raise AuthFailure(INVALID_CREDENTIALS)

        if not user.is_active:
            self._audit_logger.log_auth_failed("account deactivated", user.id, correlation_id)
            raise AuthFailure(LOGIN_DEACTIVATED)

        if not self._hasher.verify(payload.password, user.password_hash):
            self._audit_logger.log_auth_failed("wrong password", user.id, correlation_id)
            raise AuthFailure(INVALID_CREDENTIALS)

        self._users.touch_last_login(user.id, now)
        self._audit_logger.log_user_logged_in(user.id, correlation_id)
        return user.model_copy(update={"last_login": now}), self._tokens.issue(user.id)

    def authenticate(
        self,
        token: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> User:
        """
        Resolve a bearer token to an active user.

        Raises:
            AuthFailure: Missing, invalid or expired token, unknown user,
                or deactivated account, each with its own message
        """
        try:
            claims = self._tokens.decode(token)
        except AuthFailure as e:
            self._audit_logger.log_auth_failed(e.message, correlation_id=correlation_id)
            raise

        user = self._users.get_by_id(claims.user_id)
        if user is None:
            self._audit_logger.log_auth_failed(UNKNOWN_USER, claims.user_id, correlation_id)
            raise AuthFailure(UNKNOWN_USER)
        if not user.is_active:
            self._audit_logger.log_auth_failed(ACCOUNT_DEACTIVATED, user.id, correlation_id)
            raise AuthFailure(ACCOUNT_DEACTIVATED)
        return user

    def get_profile(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    def update_profile(
        self,
        user_id: str,
        payload: ProfileUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> User:
        changes = _changes(payload)
        if not changes:
            return self.get_profile(user_id)

        if "username" in changes:
            holder = self._users.get_by_username(changes["username"])
            if holder is not None and holder.id != user_id:
                raise BusinessRuleViolation(USERNAME_TAKEN)

        try:
            user = self._users.update(user_id, changes)
        except DuplicateError:
            raise BusinessRuleViolation(USERNAME_TAKEN)
        if user is None:
            raise NotFound("user", user_id)

        self._audit_logger.log_profile_updated(user_id, sorted(changes), correlation_id)
        return user

    def change_password(
        self,
        user_id: str,
        payload: PasswordChange,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self._validator.enforce(
            self._validator.check_password(payload.new_password, field="new_password")
        )
        user = self.get_profile(user_id)

        if not self._hasher.verify(payload.current_password, user.password_hash):
            self._audit_logger.log_auth_failed("wrong current password", user_id, correlation_id)
            raise AuthFailure(WRONG_PASSWORD)

        self._users.set_password(user_id, self._hasher.hash(payload.new_password))
        self._audit_logger.log_password_changed(user_id, correlation_id)

    def activity(
        self,
        user_id: str,
        limit: int = 50,
        request_id: Optional[UUID] = None,
    ) -> list[AuditEvent]:
        """
        The user's own audit trail, newest first.

        With `request_id`, only the events one request raised, in the
        order they happened.
        """
        if request_id is not None:
            return self._audit_logger.request_events(user_id, request_id)
        return self._audit_logger.recent_events(user_id, limit)


class ExpenseFlow:
    """Expense create / read / update / delete."""

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._expenses = expense_storage
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def create(
        self,
        owner_id: str,
        payload: ExpenseCreate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        now = now or utcnow()
        self._validator.enforce(self._validator.check_expense(payload.date, now))

        data = payload.model_dump(exclude={"date"})
        expense = Expense(user_id=owner_id, date=payload.date or now, **data)
        expense = self._expenses.insert(expense)

        self._audit_logger.log_record_created(
            owner_id, "expense", expense.id, expense.title, correlation_id
        )
        return expense

    def get(self, owner_id: str, expense_id: str) -> Expense:
        expense = self._expenses.get(owner_id, expense_id)
        if expense is None:
            raise NotFound("expense", expense_id)
        return expense

    def history(self, owner_id: str, expense_id: str) -> list[AuditEvent]:
        self.get(owner_id, expense_id)
        return self._audit_logger.entity_history(owner_id, "expense", expense_id)

    def update(
        self,
        owner_id: str,
        expense_id: str,
        payload: ExpenseUpdate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        changes = _changes(payload)
        self._validator.enforce(self._validator.check_expense(changes.get("date"), now))
        if not changes:
            return self.get(owner_id, expense_id)

        expense = self._expenses.update(owner_id, expense_id, changes)
        if expense is None:
            raise NotFound("expense", expense_id)

        self._audit_logger.log_record_updated(
            owner_id, "expense", expense_id, sorted(changes), correlation_id
        )
        return expense

    def delete(
        self,
        owner_id: str,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if not self._expenses.delete(owner_id, expense_id):
            raise NotFound("expense", expense_id)
        self._audit_logger.log_record_deleted(owner_id, "expense", expense_id, correlation_id)


class BillFlow:
    """
    Orchestrates the bill lifecycle.

    Flow:
    1. Create → due date checked against today
    2. Mark paid → payment appended, due date advanced (or bill closed)
    3. Repeat step 2 for recurring bills

    Bills are never reactivated automatically.
    """

    def __init__(
        self,
        bill_storage: BillStorageInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._bills = bill_storage
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def create(
        self,
        owner_id: str,
        payload: BillCreate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        self._validator.enforce(self._validator.check_bill(payload.due_date, now))

        bill = self._bills.insert(Bill(user_id=owner_id, **payload.model_dump()))

        self._audit_logger.log_record_created(
            owner_id, "bill", bill.id, bill.title, correlation_id
        )
        return bill

    def get(self, owner_id: str, bill_id: str) -> Bill:
        bill = self._bills.get(owner_id, bill_id)
        if bill is None:
            raise NotFound("bill", bill_id)
        return bill

    def history(self, owner_id: str, bill_id: str) -> list[AuditEvent]:
        self.get(owner_id, bill_id)
        return self._audit_logger.entity_history(owner_id, "bill", bill_id)

    def update(
        self,
        owner_id: str,
        bill_id: str,
        payload: BillUpdate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        changes = _changes(payload)
        self._validator.enforce(self._validator.check_bill(changes.get("due_date"), now))
        if not changes:
            return self.get(owner_id, bill_id)

        bill = self._bills.update(owner_id, bill_id, changes)
        if bill is None:
            raise NotFound("bill", bill_id)

        self._audit_logger.log_record_updated(
            owner_id, "bill", bill_id, sorted(changes), correlation_id
        )
        return bill

    def delete(
        self,
        owner_id: str,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if not self._bills.delete(owner_id, bill_id):
            raise NotFound("bill", bill_id)
        self._audit_logger.log_record_deleted(owner_id, "bill", bill_id, correlation_id)

    def mark_paid(
        self,
        owner_id: str,
        bill_id: str,
        payload: Optional[MarkPaidRequest] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Bill:
        """
        Record a payment.

        Amount and method default to the bill's own. A once bill is
        deactivated; any other bill moves its due date forward by one
        recurrence interval counted from the payment time.
        """
        payload = payload or MarkPaidRequest()
        paid_at = now or utcnow()

        bill, payment_amount = self._apply_payment(owner_id, bill_id, payload, paid_at)

        self._audit_logger.log_bill_paid(
            user_id=owner_id,
            bill_id=bill_id,
            amount=payment_amount,
            deactivated=not bill.is_active,
            next_due=bill.due_date if bill.is_active else None,
            correlation_id=correlation_id,
        )
        return bill

    @retry(
        retry=retry_if_exception_type(ConcurrentUpdateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        reraise=True,
    )
    def _apply_payment(
        self,
        owner_id: str,
        bill_id: str,
        payload: MarkPaidRequest,
        paid_at: datetime,
    ) -> tuple[Bill, float]:
        # Re-read on every attempt: the changes depend on the current frequency
        bill = self.get(owner_id, bill_id)
        payment, changes = bill.build_payment(
            paid_at,
            amount=payload.payment_amount,
            method=payload.payment_method,
            reference=payload.reference,
        )

        updated = self._bills.apply_payment(owner_id, bill_id, bill.frequency, payment, changes)
        if updated is None:
            raise NotFound("bill", bill_id)
        return updated, payment.amount


class GoalFlow:
    """
    Orchestrates the goal funding state machine.

    STATES: active, completed, paused, cancelled
    - add funds: completes the goal once current >= target (exactly once)
    - withdraw funds: refused when it would go negative; never changes status
    - set status: any state to any state
    """

    def __init__(
        self,
        goal_storage: GoalStorageInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._goals = goal_storage
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def create(
        self,
        owner_id: str,
        payload: GoalCreate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        self._validator.enforce(self._validator.check_goal(
            payload.deadline, payload.current_amount, payload.target_amount, now
        ))

        goal = self._goals.insert(Goal(user_id=owner_id, **payload.model_dump()))

        self._audit_logger.log_record_created(
            owner_id, "goal", goal.id, goal.title, correlation_id
        )
        return goal

    def get(self, owner_id: str, goal_id: str) -> Goal:
        goal = self._goals.get(owner_id, goal_id)
        if goal is None:
            raise NotFound("goal", goal_id)
        return goal

    def history(self, owner_id: str, goal_id: str) -> list[AuditEvent]:
        self.get(owner_id, goal_id)
        return self._audit_logger.entity_history(owner_id, "goal", goal_id)

    def update(
        self,
        owner_id: str,
        goal_id: str,
        payload: GoalUpdate,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """
        Partial update. A manually set current amount is checked against
        the target being sent, or the stored target when none is sent.
        """
        changes = _changes(payload)
        existing = self.get(owner_id, goal_id)
        if not changes:
            return existing

        self._validator.enforce(self._validator.check_goal(
            changes.get("deadline"),
            changes.get("current_amount"),
            changes.get("target_amount", existing.target_amount),
            now,
        ))

        goal = self._goals.update(owner_id, goal_id, changes)
        if goal is None:
            raise NotFound("goal", goal_id)

        self._audit_logger.log_record_updated(
            owner_id, "goal", goal_id, sorted(changes), correlation_id
        )
        return goal

    def delete(
        self,
        owner_id: str,
        goal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if not self._goals.delete(owner_id, goal_id):
            raise NotFound("goal", goal_id)
        self._audit_logger.log_record_deleted(owner_id, "goal", goal_id, correlation_id)

    def add_funds(
        self,
        owner_id: str,
        goal_id: str,
        amount: float,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """
        Add to the balance and complete the goal if it reached its target.

        The increment and the completion are separate conditional updates;
        the completion only matches a goal that is not yet completed, so it
        happens once even under concurrent deposits.
        """
        now = now or utcnow()

        goal = self._goals.increment_amount(owner_id, goal_id, amount)
        if goal is None:
            raise NotFound("goal", goal_id)

        self._audit_logger.log_funds_moved(
            owner_id, goal_id, amount, False, goal.current_amount, correlation_id
        )

        if goal.should_complete():
            completed = self._goals.mark_completed(owner_id, goal_id, goal.target_amount, now)
            if completed is not None:
                goal = completed
                self._audit_logger.log_goal_completed(
                    owner_id, goal_id, goal.current_amount, goal.target_amount, correlation_id
                )

        return goal

    def withdraw_funds(
        self,
        owner_id: str,
        goal_id: str,
        amount: float,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """
        Take money out of a goal.

        Raises:
            NotFound: Goal missing or not owned by the caller
            InsufficientFunds: Balance smaller than amount (nothing written)
        """
        goal = self._goals.withdraw_amount(owner_id, goal_id, amount)
        if goal is None:
            existing = self.get(owner_id, goal_id)
            raise InsufficientFunds(amount, existing.current_amount)

        self._audit_logger.log_funds_moved(
            owner_id, goal_id, amount, True, goal.current_amount, correlation_id
        )
        return goal

    def set_status(
        self,
        owner_id: str,
        goal_id: str,
        status: GoalStatus,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Goal:
        """
        Move a goal to any status.

        Completing a goal by hand stamps completed_at and tops the balance
        up to the target, so a completed goal always shows full progress.
        """
        now = now or utcnow()
        status = GoalStatus(status)
        existing = self.get(owner_id, goal_id)

        if status == GoalStatus.COMPLETED:
            goal = self._goals.set_status(
                owner_id, goal_id, status,
                completed_at=now,
                minimum_amount=existing.target_amount,
            )
        else:
            goal = self._goals.set_status(owner_id, goal_id, status)

        if goal is None:
            raise NotFound("goal", goal_id)

        self._audit_logger.log_goal_status_changed(
            owner_id, goal_id, existing.status.value, status.value, correlation_id
        )
        return goal


@dataclass
class AppComponents:
    """Everything a request handler needs, built once per process."""

    connection: MongoConnection
    accounts: AccountFlow
    expenses: ExpenseFlow
    bills: BillFlow
    goals: GoalFlow
    queries: QueryExecutor
    audit_logger: AuditLogger


def create_app_components(
    database: Optional[Database] = None,
    use_audit_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        database: Existing database handle. If None, one is created
                 lazily from MongoSettings on first use.
        use_audit_storage: Persist audit events to the audit collection.
                          Set to False to only log them locally.

    Returns:
        AppComponents sharing one connection and one audit logger
    """
    connection = MongoConnection(database)

    audit_logger = AuditLogger(MongoAuditStorage(connection) if use_audit_storage else None)
    validator = RecordValidator()

    expense_storage = MongoExpenseStorage(connection)
    bill_storage = MongoBillStorage(connection)
    goal_storage = MongoGoalStorage(connection)

    return AppComponents(
        connection=connection,
        accounts=AccountFlow(
            MongoUserStorage(connection),
            validator=validator,
            audit_logger=audit_logger,
        ),
        expenses=ExpenseFlow(expense_storage, validator, audit_logger),
        bills=BillFlow(bill_storage, validator, audit_logger),
        goals=GoalFlow(goal_storage, validator, audit_logger),
        queries=QueryExecutor(expense_storage, bill_storage, goal_storage),
        audit_logger=audit_logger,
    )
