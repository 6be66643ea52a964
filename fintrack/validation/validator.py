"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Ranges, lengths and enum membership
- Done by the pydantic payload models when FastAPI parses the request;
  format_errors turns the failures into "field: message" strings

STAGE 2 - SEMANTIC VALIDATION:
- Dates relative to now (expense not in the future, bill not past due,
  goal deadline ahead)
- Cross-field rules (goal current amount within target)
- Password policy

Stage 2 only runs once stage 1 passed. Both stages report one message
per problem; nothing is silently corrected.
"""

from datetime import datetime
from typing import Any, Optional

from fintrack.config import get_settings
from fintrack.errors import ValidationFailure
from fintrack.models.common import ValidationIssue, ValidationResult, utcnow


# Pydantic prefixes messages raised from custom validators
_VALUE_ERROR_PREFIXES = ("Value error, ", "Assertion failed, ")


def format_error_location(loc: tuple) -> str:
    """Dotted field path without the request-part prefix FastAPI adds."""
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts)


def format_errors(errors: list[dict[str, Any]]) -> list[str]:
    """
    Turn pydantic error dicts into "field: message" strings.

    Works for both pydantic's ValidationError.errors() and FastAPI's
    RequestValidationError.errors().
    """
    messages = []
    for error in errors:
        message = error.get("msg", "Invalid value")
        for prefix in _VALUE_ERROR_PREFIXES:
            if message.startswith(prefix):
                message = message[len(prefix):]
        location = format_error_location(tuple(error.get("loc", ())))
        messages.append(f"{location}: {message}" if location else message)
    return messages


class RecordValidator:
    """
    Stage 2 checks for create/update payloads that already parsed.

    Each check returns a ValidationResult; `enforce` raises on the
    combined errors of all of them.
    """

    def __init__(self):
        self._settings = get_settings().app

    def check_expense(
        self,
        date: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """An expense cannot be dated in the future."""
        now = now or utcnow()
        issues = []

        if date is not None and date > now:
            issues.append(ValidationIssue(
                field="date",
                issue_type="in_future",
                message="date: Expense date cannot be in the future",
            ))

        return self._result(issues)

    def check_bill(
        self,
        due_date: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        A bill cannot be created with, or moved to, a due date before today.

        Compared by calendar day so a bill due earlier today is accepted.
        """
        now = now or utcnow()
        issues = []

        if due_date is not None and due_date.date() < now.date():
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="in_past",
                message="due_date: Due date cannot be in the past",
            ))

        return self._result(issues)

    def check_goal(
        self,
        deadline: Optional[datetime],
        current_amount: Optional[float],
        target_amount: Optional[float],
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """
        Deadline must lie ahead; a manually set current amount may not exceed target.

        Pass None for anything the caller is not changing.
        """
        now = now or utcnow()
        issues = []

        if deadline is not None and deadline <= now:
            issues.append(ValidationIssue(
                field="deadline",
                issue_type="in_past",
                message="deadline: Deadline must be in the future",
            ))

        if (
            current_amount is not None
            and target_amount is not None
            and current_amount > target_amount
        ):
            issues.append(ValidationIssue(
                field="current_amount",
                issue_type="out_of_range",
                message="current_amount: Current amount cannot exceed target amount",
            ))

        return self._result(issues)

    def check_password(self, password: str, field: str = "password") -> ValidationResult:
        minimum = self._settings.min_password_length
        issues = []

        if len(password) < minimum:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_short",
                message=f"{field}: Password must be at least {minimum} characters long",
            ))

        return self._result(issues)

    @staticmethod
    def _result(issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(issues=issues)

    @staticmethod
    def enforce(*results: ValidationResult) -> None:
        """
        Raise if any result has errors, combining their messages.

        Raises:
            ValidationFailure: With every error message, in order
        """
        messages = [message for result in results for message in result.error_messages]
        if messages:
            raise ValidationFailure(messages)
