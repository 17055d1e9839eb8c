"""Router aggregation: one APIRouter per feature, mounted under ``/api``."""

from fastapi import FastAPI

from . import budgets, friends, notifications, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    app.include_router(transactions.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")
    app.include_router(friends.router, prefix="/api")
    app.include_router(budgets.router, prefix="/api")
