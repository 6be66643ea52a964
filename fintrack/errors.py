"""
Error Taxonomy

Every failure a caller can see falls into one of these classes.
The HTTP layer maps each class to exactly one status code.

DESIGN DECISION: "Not found" and "not yours" are the same error.
A user probing for another user's record learns nothing about
whether it exists.
"""

from typing import Optional


class FinanceTrackerError(Exception):
    """Base exception for all domain errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailure(FinanceTrackerError):
    """Schema, range or enum violation. Carries one message per problem."""

    status_code = 400

    def __init__(self, errors: list[str], message: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(message)


class AuthFailure(FinanceTrackerError):
    """Missing, invalid or expired credential, or a deactivated account."""

    status_code = 401


class NotFound(FinanceTrackerError):
    """Record is absent or is not owned by the caller."""

    status_code = 404

    def __init__(self, resource: str, record_id: Optional[str] = None):
        self.resource = resource
        self.record_id = record_id
        super().__init__(f"{resource.capitalize()} not found")


class BusinessRuleViolation(FinanceTrackerError):
    """Input is well-formed but breaks a domain rule."""

    status_code = 400


class InsufficientFunds(BusinessRuleViolation):
    """Withdrawal larger than the goal's current amount."""

    def __init__(self, requested: float, available: float):
        self.requested = requested
        self.available = available
        super().__init__("Insufficient funds in goal")
