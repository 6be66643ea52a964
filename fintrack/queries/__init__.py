"""Query execution package."""

from fintrack.queries.executor import QueryExecutor, format_period_key

__all__ = ["QueryExecutor", "format_period_key"]
