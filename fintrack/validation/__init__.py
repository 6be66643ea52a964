"""Validation package."""

from fintrack.validation.validator import RecordValidator, format_error_location, format_errors

__all__ = ["RecordValidator", "format_error_location", "format_errors"]
