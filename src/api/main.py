"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
wires the registry client and profile store, and manages
lifespan events.
"""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.registry.mock import MockRegistryClient
from src.adapters.store import (
    InMemoryProfileStore,
    JsonFileProfileStore,
    PostgresProfileStore,
    run_migrations,
)
from src.api.sessions import WorkflowSessions
from src.api.v1 import router as v1_router
from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.domain.models import AccountType
from src.domain.ports import ProfileStore, VerificationClient
from src.domain.profile import ProfileService
from src.domain.registration import RegistrationWorkflow
from src.domain.steps import FieldRules

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Dealer Registration API v1 - Multi-step registration with "
        "business and license verification",
    },
]


def build_profile_store(settings: Settings) -> tuple[ProfileStore, ConnectionPool | None]:
    """
    Create the configured profile store.

    Returns:
        The store, plus the connection pool when the postgres backend is used
    """
    if settings.profile_store_backend == "memory":
        return InMemoryProfileStore(), None

    if settings.profile_store_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        return PostgresProfileStore(pool, session_key=settings.profile_session_key), pool

    return JsonFileProfileStore(settings.profile_store_path), None


def build_registry_client(settings: Settings) -> VerificationClient:
    return MockRegistryClient(
        business_latency_ms=(settings.business_lookup_min_ms, settings.business_lookup_max_ms),
        license_latency_ms=(settings.license_lookup_min_ms, settings.license_lookup_max_ms),
    )


def workflow_factory(
    settings: Settings, client: VerificationClient, store: ProfileStore
) -> Callable[[AccountType], RegistrationWorkflow]:
    """Bind settings and collaborators into a per-session workflow constructor."""
    rules = FieldRules(mobile_prefix=settings.mobile_prefix)

    def create(account_type: AccountType) -> RegistrationWorkflow:
        return RegistrationWorkflow(
            verification_client=client,
            profile_store=store,
            account_type=account_type,
            verification_timeout=settings.verification_timeout_seconds,
            rules=rules,
            bcrypt_cost=settings.bcrypt_cost,
        )

    return create


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Configures logging
    - Creates the profile store (and database pool for postgres)
    - Creates the registry client and session registry
    - Closes the connection pool on shutdown
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting application...")
    logger.info(f"Profile store backend: {settings.profile_store_backend}")

    store, pool = build_profile_store(settings)
    client = build_registry_client(settings)

    app.state.pool = pool
    app.state.profile_store = store
    app.state.profile_service = ProfileService(store=store)
    app.state.sessions = WorkflowSessions(workflow_factory(settings, client, store))

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="dealer-onboarding",
    description="Dealer Registration API - Business and identity verification workflow",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    Returns 200 OK if the application is up. With the postgres backend the
    database connection is validated too; a failure raises.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
