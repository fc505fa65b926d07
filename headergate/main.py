"""headergate demo application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan — @asynccontextmanager startup/shutdown sequence
  - /health — readiness + per-handler elapsed-time statistics

uvicorn builds the app through the factory (see run.py):
  uvicorn --factory headergate.main:create_app

Startup sequence:
  1. config (argument or load_config())  → app.state.config
  2. credential store / repository       → app.state.store, app.state.repository
     (sqlite backend: initialize() + issue tokens for configured principals)
  3. metrics sinks                       → app.state.durations
  4. app.state.ready = True

With no configured principals the in-memory store is seeded with the demo
credentials (``secret-123`` → user 42, ``secret-admin`` → admin 1) so the curl
examples in controllers.py work out of the box.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.routing import APIRouter

from headergate.config import Config, load_config
from headergate.controllers import EssentialActions
from headergate.metrics import DurationTracker, FanOutMetricsSink, LoggingMetricsSink
from headergate.models.domain import Principal
from headergate.stores.memory import InMemoryCredentialStore, InMemoryResourceRepository
from headergate.stores.protocol import CredentialStore, ResourceRepository
from headergate.stores.sqlite import SQLiteCredentialStore
from headergate.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

# ─── Demo fixtures (used when config has no principals / inventory) ──────────

DEMO_PRINCIPALS: list[dict[str, Any]] = [
    {"token": "secret-123", "id": 42, "name": "alice", "permission": "user", "department": "sales"},
    {"token": "secret-admin", "id": 1, "name": "root", "permission": "admin", "department": "sales"},
]

DEMO_INVENTORY: list[dict[str, Any]] = [
    {"id": 7, "name": "laptops", "department": "sales"},
    {"id": 8, "name": "forklifts", "department": "logistics"},
]

health_router = APIRouter(tags=["health"])


@health_router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """503 until startup completes; then status plus elapsed-time statistics."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "headergate is starting up"},
        )
    config: Config = request.app.state.config
    durations: DurationTracker = request.app.state.durations
    return {
        "status": "ok",
        "store_backend": config.store.backend,
        "unexpected_body": config.body.unexpected_body,
        "durations": durations.snapshot(),
    }


def _build_store(config: Config) -> CredentialStore:
    if config.store.backend == "sqlite":
        return SQLiteCredentialStore(Path(config.store.path))
    return InMemoryCredentialStore.from_config(config.principals or DEMO_PRINCIPALS)


async def _seed_sqlite(store: SQLiteCredentialStore, config: Config) -> None:
    await store.initialize()
    for entry in config.principals:
        token = entry.get("token")
        await store.seed_principal(Principal.from_dict(entry), token)
        if not token:
            logger.warning(
                "Configured principal has no token; none issued",
                principal_id=entry["id"],
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: initialise persistent stores, then mark ready. Shutdown: unmark."""
    logger.info("headergate starting up...")
    store = app.state.store
    if isinstance(store, SQLiteCredentialStore):
        await _seed_sqlite(store, app.state.config)
    app.state.ready = True
    logger.info("headergate ready", store_backend=app.state.config.store.backend)
    try:
        yield
    finally:
        app.state.ready = False
        logger.info("headergate shut down")


def create_app(
    config: Optional[Config] = None,
    store: Optional[CredentialStore] = None,
    repository: Optional[ResourceRepository] = None,
) -> FastAPI:
    """Build the demo application.

    Args:
        config:     Loaded config; ``load_config()`` when None.
        store:      Credential store override (tests); built from config when None.
        repository: Resource repository override; built from config when None.
    """
    config = config or load_config()
    store = store if store is not None else _build_store(config)
    repository = (
        repository
        if repository is not None
        else InMemoryResourceRepository.from_config(config.inventory or DEMO_INVENTORY)
    )
    durations = DurationTracker(window=config.timing.window)
    sink = FanOutMetricsSink(
        [durations, LoggingMetricsSink(slow_threshold_ms=config.timing.slow_threshold_ms)]
    )
    actions = EssentialActions(store=store, repository=repository, sink=sink, config=config)

    application = FastAPI(
        title="headergate",
        description="Header-gated authorization pipeline demo",
        lifespan=lifespan,
    )
    application.state.config = config
    application.state.store = store
    application.state.repository = repository
    application.state.durations = durations
    application.state.ready = False

    application.include_router(health_router)
    for route in actions.routes():
        application.router.routes.append(route)

    return application
