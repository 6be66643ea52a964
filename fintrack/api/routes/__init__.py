"""HTTP routers, one per resource."""

from fintrack.api.routes import auth, bills, expenses, goals

__all__ = ["auth", "bills", "expenses", "goals"]
