"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from camledger.controllers.auth_controller import router as auth_router
from camledger.controllers.expense_controller import router as expense_router
from camledger.repository.data_repository import DataRepository
from camledger.services.allocation_service import CamAllocationService
from camledger.services.auth_service import AuthService
from camledger.services.expense_service import ExpenseLifecycleService
from camledger.utils.config import Settings, get_settings
from camledger.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    """
    settings = settings or get_settings()

    # --- Repository (directory + expense store) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    allocation_service = CamAllocationService(
        repository=repository,
        settings=settings,
    )
    expense_service = ExpenseLifecycleService(
        repository=repository,
        settings=settings,
        allocation_service=allocation_service,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(auth_router)
    app.include_router(expense_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.allocation_service = allocation_service
    app.state.expense_service = expense_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the demo directory is seeded; seeding is skipped
    when buildings already exist or when CAM_SEED_DEMO_DATA is off.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo building directory (skipped if not empty)")
        repository.seed_demo_data()

    if not settings.admin_token:
        logger.warning("Startup: CAM_ADMIN_TOKEN not set; mutating endpoints are unprotected")

    logger.info("Startup complete; system ready")


# Module-level app object for uvicorn
app = create_app()
