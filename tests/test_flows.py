"""
Tests for the orchestrator flows

Each flow is driven with an explicit clock so outcomes are exact.
Storage is mongomock via the `components` fixture.
"""

import pytest
from datetime import datetime, timedelta
from uuid import uuid4

from fintrack.errors import (
    AuthFailure,
    BusinessRuleViolation,
    InsufficientFunds,
    NotFound,
    ValidationFailure,
)
from fintrack.models.audit import AuditEventBuilder, AuditEventType
from fintrack.models.bill import BillCreate, BillFrequency, BillUpdate, MarkPaidRequest
from fintrack.models.common import utcnow
from fintrack.models.expense import ExpenseCreate, ExpenseUpdate
from fintrack.models.goal import GoalCreate, GoalStatus, GoalUpdate
from fintrack.models.user import PasswordChange, ProfileUpdate, UserLogin, UserRegister
from fintrack.orchestrator import (
    EMAIL_TAKEN,
    INVALID_CREDENTIALS,
    LOGIN_DEACTIVATED,
    USERNAME_TAKEN,
    WRONG_PASSWORD,
)
from fintrack.services.auth import ACCOUNT_DEACTIVATED, MISSING_TOKEN


NOW = datetime(2024, 1, 15, 10, 0, 0)


def bill_payload(**overrides) -> BillCreate:
    fields = dict(
        title="Electricity",
        amount=100,
        category="utilities",
        due_date=datetime(2024, 1, 20, 9, 0),
        frequency="monthly",
    )
    fields.update(overrides)
    return BillCreate(**fields)


def goal_payload(**overrides) -> GoalCreate:
    fields = dict(
        title="New car",
        target_amount=10000,
        current_amount=9000,
        deadline=datetime(2024, 12, 31),
    )
    fields.update(overrides)
    return GoalCreate(**fields)


class TestAccountFlow:
    """Tests for registration, login and the token gate."""

    def test_register_returns_usable_token(self, components):
        """Test the token from registration authenticates the new user."""
        user, token = components.accounts.register(
            UserRegister(username="carol", email="carol@example.com", password="secret123")
        )
        assert components.accounts.authenticate(token).id == user.id
        assert user.password_hash != "secret123"

    def test_register_duplicate_email(self, components, owner):
        """Test a second account with the same email is refused."""
        with pytest.raises(BusinessRuleViolation, match=EMAIL_TAKEN):
            components.accounts.register(
                UserRegister(username="alice2", email="ALICE@example.com", password="secret123")
            )

    def test_register_duplicate_username(self, components, owner):
        """Test a second account with the same username is refused."""
        with pytest.raises(BusinessRuleViolation, match=USERNAME_TAKEN):
            components.accounts.register(
                UserRegister(username="alice", email="other@example.com", password="secret123")
            )

    def test_register_short_password(self, components):
        """Test the password policy runs before anything is stored."""
        with pytest.raises(ValidationFailure) as exc_info:
            components.accounts.register(
                UserRegister(username="dave", email="dave@example.com", password="123")
            )
        assert exc_info.value.errors == ["password: Password must be at least 6 characters long"]

    def test_login(self, components, owner):
        """Test a correct password returns a token and stamps last_login."""
        user, token = components.accounts.login(
            UserLogin(email="alice@example.com", password="secret123"), now=NOW
        )
        assert user.id == owner.id
        assert user.last_login == NOW
        assert components.accounts.get_profile(owner.id).last_login == NOW
        assert token

    @pytest.mark.parametrize("email,password", [
        ("alice@example.com", "wrong-password"),
        ("nobody@example.com", "secret123"),
    ])
    def test_login_failures_share_a_message(self, components, owner, email, password):
        """Test unknown email and wrong password are indistinguishable."""
        with pytest.raises(AuthFailure, match=INVALID_CREDENTIALS):
            components.accounts.login(UserLogin(email=email, password=password))

    def test_deactivated_account(self, components, database, owner):
        """Test a deactivated user can neither log in nor use a token."""
        _, token = components.accounts.login(
            UserLogin(email="alice@example.com", password="secret123")
        )
        database["users"].update_one({"username": "alice"}, {"$set": {"is_active": False}})

        with pytest.raises(AuthFailure, match=LOGIN_DEACTIVATED):
            components.accounts.login(UserLogin(email="alice@example.com", password="secret123"))
        with pytest.raises(AuthFailure, match=ACCOUNT_DEACTIVATED):
            components.accounts.authenticate(token)

    def test_authenticate_without_token(self, components):
        """Test a missing token is its own failure."""
        with pytest.raises(AuthFailure, match=MISSING_TOKEN):
            components.accounts.authenticate(None)

    def test_update_profile(self, components, owner):
        """Test only sent fields change."""
        user = components.accounts.update_profile(owner.id, ProfileUpdate(first_name="Alice"))
        assert user.first_name == "Alice"
        assert user.username == "alice"

    def test_update_profile_username_taken(self, components, owner, intruder):
        """Test a username held by someone else is refused."""
        with pytest.raises(BusinessRuleViolation, match=USERNAME_TAKEN):
            components.accounts.update_profile(owner.id, ProfileUpdate(username="mallory"))

    def test_change_password(self, components, owner):
        """Test the new password works and the old one stops working."""
        components.accounts.change_password(
            owner.id, PasswordChange(current_password="secret123", new_password="newsecret")
        )
        components.accounts.login(UserLogin(email="alice@example.com", password="newsecret"))
        with pytest.raises(AuthFailure):
            components.accounts.login(UserLogin(email="alice@example.com", password="secret123"))

    def test_change_password_wrong_current(self, components, owner):
        """Test the current password must match."""
        with pytest.raises(AuthFailure, match=WRONG_PASSWORD):
            components.accounts.change_password(
                owner.id, PasswordChange(current_password="nope", new_password="newsecret")
            )

    def test_activity_newest_first(self, components, owner):
        """Test a user's activity lists their latest events first."""
        later = AuditEventBuilder.profile_updated(owner.id, ["first_name"]).model_copy(
            update={"timestamp": utcnow() + timedelta(minutes=1)}
        )
        components.audit_logger.log(later)

        events = components.accounts.activity(owner.id)

        assert [e.event_type for e in events][:2] == [
            AuditEventType.PROFILE_UPDATED,
            AuditEventType.USER_REGISTERED,
        ]
        assert len(components.accounts.activity(owner.id, limit=1)) == 1

    def test_activity_for_one_request(self, components, owner, intruder):
        """Test a request id narrows activity to that request, for its owner only."""
        request_id = uuid4()
        components.accounts.update_profile(
            owner.id, ProfileUpdate(last_name="Smith"), correlation_id=request_id
        )

        events = components.accounts.activity(owner.id, request_id=request_id)

        assert [e.event_type for e in events] == [AuditEventType.PROFILE_UPDATED]
        assert components.accounts.activity(intruder.id, request_id=request_id) == []


class TestExpenseFlow:
    """Tests for expense create/update/delete."""

    def test_create_defaults_date_to_now(self, components, owner):
        """Test an expense without a date is dated now."""
        expense = components.expenses.create(
            owner.id, ExpenseCreate(title="Lunch", amount=12.5, category="food"), now=NOW
        )
        assert expense.date == NOW
        assert expense.user_id == owner.id

    def test_future_date_rejected(self, components, owner):
        """Test an expense cannot be dated in the future."""
        payload = ExpenseCreate(
            title="Lunch", amount=12.5, category="food", date=NOW + timedelta(days=1)
        )
        with pytest.raises(ValidationFailure) as exc_info:
            components.expenses.create(owner.id, payload, now=NOW)
        assert exc_info.value.errors == ["date: Expense date cannot be in the future"]

    def test_update_and_delete(self, components, owner):
        """Test partial update then delete."""
        expense = components.expenses.create(
            owner.id, ExpenseCreate(title="Lunch", amount=12.5, category="food"), now=NOW
        )
        updated = components.expenses.update(owner.id, expense.id, ExpenseUpdate(amount=15))
        assert updated.amount == 15
        assert updated.title == "Lunch"

        components.expenses.delete(owner.id, expense.id)
        with pytest.raises(NotFound, match="Expense not found"):
            components.expenses.get(owner.id, expense.id)

    def test_other_owner_sees_not_found(self, components, owner, intruder):
        """Test another user's expense looks exactly like a missing one."""
        expense = components.expenses.create(
            owner.id, ExpenseCreate(title="Lunch", amount=12.5, category="food"), now=NOW
        )
        with pytest.raises(NotFound):
            components.expenses.get(intruder.id, expense.id)
        with pytest.raises(NotFound):
            components.expenses.update(intruder.id, expense.id, ExpenseUpdate(amount=1))
        with pytest.raises(NotFound):
            components.expenses.delete(intruder.id, expense.id)


class TestBillFlow:
    """Tests for the bill lifecycle."""

    def test_due_date_in_past_rejected(self, components, owner):
        """Test a bill cannot be created already past due."""
        with pytest.raises(ValidationFailure) as exc_info:
            components.bills.create(
                owner.id, bill_payload(due_date=datetime(2024, 1, 10)), now=NOW
            )
        assert exc_info.value.errors == ["due_date: Due date cannot be in the past"]

    def test_due_earlier_today_accepted(self, components, owner):
        """Test the past-due check compares calendar days."""
        bill = components.bills.create(
            owner.id, bill_payload(due_date=datetime(2024, 1, 15, 8, 0)), now=NOW
        )
        assert bill.id is not None

    def test_history_follows_the_bill(self, components, owner):
        """Test a bill's history lists creation then payment."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)
        components.bills.mark_paid(owner.id, bill.id, now=NOW)

        events = components.bills.history(owner.id, bill.id)

        assert [e.event_type for e in events] == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.BILL_PAID,
        ]

    def test_history_of_someone_elses_bill(self, components, owner, intruder):
        """Test another user's bill history is reported as not found."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)
        with pytest.raises(NotFound):
            components.bills.history(intruder.id, bill.id)

    def test_mark_paid_monthly(self, components, owner):
        """Test paying a monthly bill on Jan 15 moves it to Feb 15."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)

        paid = components.bills.mark_paid(owner.id, bill.id, now=NOW)

        assert paid.is_active is True
        assert paid.last_paid == NOW
        assert paid.due_date == datetime(2024, 2, 15, 10, 0)
        assert paid.next_due_date == paid.due_date
        assert len(paid.payment_history) == 1
        assert paid.payment_history[0].amount == 100
        assert paid.total_paid == 100

    def test_mark_paid_twice_appends_history(self, components, owner):
        """Test each payment adds exactly one history entry."""
        bill = components.bills.create(owner.id, bill_payload(frequency="weekly"), now=NOW)

        components.bills.mark_paid(owner.id, bill.id, now=NOW)
        paid = components.bills.mark_paid(owner.id, bill.id, now=NOW + timedelta(days=7))

        assert len(paid.payment_history) == 2
        assert paid.due_date == NOW + timedelta(days=14)

    def test_mark_paid_once_deactivates(self, components, owner):
        """Test a one-time bill closes and keeps its due date."""
        bill = components.bills.create(owner.id, bill_payload(frequency="once"), now=NOW)

        paid = components.bills.mark_paid(owner.id, bill.id, now=NOW)

        assert paid.is_active is False
        assert paid.due_date == datetime(2024, 1, 20, 9, 0)
        assert paid.is_overdue(NOW + timedelta(days=30)) is False

    def test_mark_paid_with_payload(self, components, owner):
        """Test amount, method and reference come from the request."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)

        paid = components.bills.mark_paid(
            owner.id,
            bill.id,
            MarkPaidRequest(payment_amount=80, payment_method="cash", reference="R-1"),
            now=NOW,
        )

        entry = paid.payment_history[0]
        assert entry.amount == 80
        assert entry.payment_method.value == "cash"
        assert entry.reference == "R-1"

    def test_mark_paid_other_owner(self, components, owner, intruder):
        """Test a user cannot pay someone else's bill."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)

        with pytest.raises(NotFound, match="Bill not found"):
            components.bills.mark_paid(intruder.id, bill.id, now=NOW)
        assert components.bills.get(owner.id, bill.id).payment_history == []

    def test_update_frequency(self, components, owner):
        """Test a partial update keeps everything else."""
        bill = components.bills.create(owner.id, bill_payload(), now=NOW)
        updated = components.bills.update(
            owner.id, bill.id, BillUpdate(frequency=BillFrequency.QUARTERLY), now=NOW
        )
        assert updated.frequency == BillFrequency.QUARTERLY
        assert updated.amount == 100

    def test_malformed_id_is_not_found(self, components, owner):
        """Test a garbage id is a plain 404."""
        with pytest.raises(NotFound):
            components.bills.get(owner.id, "not-an-object-id")


class TestGoalFlow:
    """Tests for the goal funding state machine."""

    def test_create_deadline_in_past(self, components, owner):
        """Test the deadline must lie ahead."""
        with pytest.raises(ValidationFailure) as exc_info:
            components.goals.create(
                owner.id, goal_payload(deadline=datetime(2024, 1, 1)), now=NOW
            )
        assert exc_info.value.errors == ["deadline: Deadline must be in the future"]

    def test_create_current_above_target(self, components, owner):
        """Test a goal cannot start above its target."""
        with pytest.raises(ValidationFailure) as exc_info:
            components.goals.create(owner.id, goal_payload(current_amount=20000), now=NOW)
        assert exc_info.value.errors == [
            "current_amount: Current amount cannot exceed target amount"
        ]

    def test_add_funds_completes_goal(self, components, owner):
        """Test 9000 + 1500 against 10000 completes the goal and keeps the overshoot."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)

        funded = components.goals.add_funds(owner.id, goal.id, 1500, now=NOW)

        assert funded.current_amount == 10500
        assert funded.status == GoalStatus.COMPLETED
        assert funded.completed_at == NOW
        assert funded.progress_percentage == 105

    def test_half_percent_progress_rounds_up(self, components, owner):
        """Test a goal funded to 12.5 percent reports 13."""
        goal = components.goals.create(
            owner.id, goal_payload(target_amount=8, current_amount=0), now=NOW
        )

        funded = components.goals.add_funds(owner.id, goal.id, 1, now=NOW)

        assert funded.to_response(NOW)["progress_percentage"] == 13

    def test_completion_happens_once(self, components, owner):
        """Test further deposits do not restamp completed_at."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)
        components.goals.add_funds(owner.id, goal.id, 1000, now=NOW)

        later = components.goals.add_funds(owner.id, goal.id, 50, now=NOW + timedelta(days=1))

        assert later.current_amount == 10050
        assert later.completed_at == NOW

    def test_partial_funding_stays_active(self, components, owner):
        """Test a deposit under target leaves the goal active."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)
        funded = components.goals.add_funds(owner.id, goal.id, 500, now=NOW)
        assert funded.status == GoalStatus.ACTIVE
        assert funded.completed_at is None

    def test_withdraw_insufficient_funds(self, components, owner):
        """Test an overdraw fails and leaves the balance untouched."""
        goal = components.goals.create(owner.id, goal_payload(current_amount=100), now=NOW)

        with pytest.raises(InsufficientFunds) as exc_info:
            components.goals.withdraw_funds(owner.id, goal.id, 150)

        assert exc_info.value.message == "Insufficient funds in goal"
        assert components.goals.get(owner.id, goal.id).current_amount == 100

    def test_add_then_withdraw_restores_balance(self, components, owner):
        """Test a deposit and an equal withdrawal cancel out."""
        goal = components.goals.create(owner.id, goal_payload(current_amount=100), now=NOW)

        components.goals.add_funds(owner.id, goal.id, 250, now=NOW)
        goal = components.goals.withdraw_funds(owner.id, goal.id, 250)

        assert goal.current_amount == 100
        assert goal.status == GoalStatus.ACTIVE

    def test_withdraw_does_not_uncomplete(self, components, owner):
        """Test a completed goal stays completed after a withdrawal."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)
        components.goals.add_funds(owner.id, goal.id, 1000, now=NOW)

        goal = components.goals.withdraw_funds(owner.id, goal.id, 5000)

        assert goal.current_amount == 5000
        assert goal.status == GoalStatus.COMPLETED

    def test_funds_on_other_owner_goal(self, components, owner, intruder):
        """Test funding someone else's goal is a 404, not a leak."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)

        with pytest.raises(NotFound):
            components.goals.add_funds(intruder.id, goal.id, 10, now=NOW)
        with pytest.raises(NotFound):
            components.goals.withdraw_funds(intruder.id, goal.id, 10)
        assert components.goals.get(owner.id, goal.id).current_amount == 9000

    def test_set_status_completed(self, components, owner):
        """Test manual completion stamps completed_at and fills the balance."""
        goal = components.goals.create(owner.id, goal_payload(current_amount=300), now=NOW)

        done = components.goals.set_status(owner.id, goal.id, GoalStatus.COMPLETED, now=NOW)

        assert done.status == GoalStatus.COMPLETED
        assert done.completed_at == NOW
        assert done.current_amount == 10000

    def test_set_status_any_to_any(self, components, owner):
        """Test statuses can move freely, including back to active."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)

        for status in (GoalStatus.PAUSED, GoalStatus.CANCELLED, GoalStatus.ACTIVE):
            goal = components.goals.set_status(owner.id, goal.id, status, now=NOW)
            assert goal.status == status

    def test_update_checks_stored_target(self, components, owner):
        """Test a new current amount is checked against the stored target."""
        goal = components.goals.create(owner.id, goal_payload(), now=NOW)

        with pytest.raises(ValidationFailure):
            components.goals.update(owner.id, goal.id, GoalUpdate(current_amount=12000), now=NOW)

        updated = components.goals.update(
            owner.id, goal.id, GoalUpdate(current_amount=12000, target_amount=15000), now=NOW
        )
        assert updated.current_amount == 12000
        assert updated.target_amount == 15000
