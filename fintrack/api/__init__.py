"""HTTP surface: FastAPI app factory, dependencies and routers."""

from fintrack.api.app import create_app

__all__ = ["create_app"]
