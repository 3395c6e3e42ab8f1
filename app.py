"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the document store and services, registers routers and error
handlers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tutoring_backend.controllers.approval_controller import router as approval_router
from tutoring_backend.controllers.resource_controller import router as resource_router
from tutoring_backend.controllers.responses import register_exception_handlers
from tutoring_backend.repository.document_store import DocumentStore, JsonFileDocumentStore
from tutoring_backend.repository.seed_data import seed_demo_data_if_empty
from tutoring_backend.services.approval_service import ApprovalExecutor
from tutoring_backend.services.auth_service import AuthService
from tutoring_backend.services.change_service import ChangeApplier
from tutoring_backend.services.inefficiency_service import InefficiencyDetector
from tutoring_backend.services.matching_service import ReallocationMatcher
from tutoring_backend.services.notification_service import NotificationDispatcher
from tutoring_backend.services.plan_service import OptimizationPlanGenerator
from tutoring_backend.services.resource_service import ResourceWorkflowService
from tutoring_backend.services.workload_service import WorkloadCalculator
from tutoring_backend.utils.config import Settings, get_settings
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    Tests pass their own settings and an in-memory store.
    """
    settings = settings or get_settings()

    # --- Repository (flat JSON collections unless a store is injected) ---
    store = store if store is not None else JsonFileDocumentStore(settings)

    # --- Services ---
    workload_calculator = WorkloadCalculator(store=store, settings=settings)
    detector = InefficiencyDetector(
        store=store,
        workload_calculator=workload_calculator,
        settings=settings,
    )
    plan_generator = OptimizationPlanGenerator(
        store=store,
        detector=detector,
        matcher=ReallocationMatcher(settings=settings),
        settings=settings,
    )
    notifier = NotificationDispatcher(store)
    resource_service = ResourceWorkflowService(
        store=store,
        detector=detector,
        plan_generator=plan_generator,
        settings=settings,
    )
    change_applier = ChangeApplier(store=store, notifier=notifier, settings=settings)
    approval_executor = ApprovalExecutor(store=store, notifier=notifier, settings=settings)
    auth_service = AuthService(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers and error envelopes ---
    app.include_router(resource_router)
    app.include_router(approval_router)
    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.store = store
    app.state.auth_service = auth_service
    app.state.resource_service = resource_service
    app.state.change_applier = change_applier
    app.state.approval_executor = approval_executor

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Collection files are created before seeding; the demo dataset is only
    written into an empty users collection.
    """
    settings: Settings = app.state.settings
    store: DocumentStore = app.state.store

    if isinstance(store, JsonFileDocumentStore):
        logger.info("Startup: initializing document collections")
        store.initialize_collections()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo dataset (skipped if users exist)")
        seed_demo_data_if_empty(store)

    logger.info("Startup complete | app=%s | version=%s", settings.app_name, settings.app_version)


# Module-level app object for uvicorn
app = create_app()
