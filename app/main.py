"""
Finance Tracker API Entry Point

Run with:
    uvicorn app.main:app --reload

or directly:
    python -m app.main

All configuration comes from environment variables or a .env file
(see fintrack.config.settings).
"""

import os

import uvicorn

from fintrack.api import create_app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
    )
