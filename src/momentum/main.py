"""
Momentum Command Center - Main Application
==========================================

Event-sourced CRM core.

Modules:
- Events: append-only event store with optimistic concurrency
- Projections: checkpointed projectors (lifecycle, stage facts, support cases)
- SLA: stage and support clocks, breach scanner, Slack alerts
- Command Center: tiered action feed, attention flags, regeneration

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, events and read models
- Infrastructure: Database, LLM, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from momentum.config import settings
from momentum.core.exceptions import ApplicationException

# Infrastructure
from momentum.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from momentum.infrastructure.llm import create_llm_client

# Event store and projections
from momentum.events.infrastructure.repositories import SQLAlchemyEventStore
from momentum.projections.application import ProjectorLocks, ProjectorRunner
from momentum.projections.infrastructure.repositories import (
    SQLAlchemyCheckpointRepository,
    SQLAlchemyReadModelStore,
)
from momentum.projections.registry import build_projectors

# SLA Module
from momentum.sla.application import SLABreachScanner
from momentum.sla.infrastructure import JobScheduler, SlackClient, get_config_manager

# Module Routers
from momentum.command_center.interfaces import flags_router, router as command_center_router
from momentum.events.interfaces import router as events_router
from momentum.projections.interfaces import router as projectors_router
from momentum.support.interfaces import router as support_router

# Logging and middleware
from momentum.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from momentum.shared.infrastructure.logging import get_logger, log_latency, setup_logging

logger = get_logger(__name__)

# Global service instances
sla_config_manager = None
scheduler = None
slack_client = None
llm_client = None
projector_locks = None
database_ready = False


async def projector_catch_up_job() -> None:
    """Apply new events to every projector; halted projectors stay halted."""
    async with get_session_context() as session:
        runner = ProjectorRunner(
            SQLAlchemyEventStore(session),
            SQLAlchemyCheckpointRepository(session),
            SQLAlchemyReadModelStore(session),
            locks=projector_locks,
        )
        for projector in build_projectors():
            with log_latency(logger, "projector_catch_up", projector=projector.name):
                result = await runner.run_to_completion(projector)
            if result.halted:
                logger.warning(
                    "Projector is halted, waiting for manual resume",
                    extra={"projector": projector.name}
                )


async def sla_scan_job() -> None:
    """Catch the projectors up, then emit breach and warning events for overdue aggregates."""
    await projector_catch_up_job()
    config = sla_config_manager.config if sla_config_manager else None
    async with get_session_context() as session:
        scanner = SLABreachScanner(
            SQLAlchemyEventStore(session),
            SQLAlchemyReadModelStore(session),
            config,
            slack=slack_client,
        )
        await scanner.scan()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Load SLA configuration (and watch the file)
    5. Start scheduler (projector catch-up, SLA breach scan)
    6. Initialize LLM client

    SHUTDOWN:
    1. Stop scheduler
    2. Stop config watcher
    3. Close Slack client
    4. Close database connections
    """
    global sla_config_manager, scheduler, slack_client, llm_client, projector_locks, database_ready

    # === STARTUP ===
    setup_logging(level=settings.log_level, environment=settings.environment)
    logger.info("Starting Command Center", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    # Without a database the API starts in degraded mode
    try:
        init_database()
        await create_tables()
        database_ready = True
    except ApplicationException as e:
        logger.warning("Database not configured - running in degraded mode", extra={"error": e.message})
    except Exception as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    logger.info("Loading SLA configuration")
    sla_config_manager = get_config_manager()
    sla_config_manager.start_watching()

    slack_client = SlackClient()

    projector_locks = ProjectorLocks()
    app.state.projector_locks = projector_locks

    if database_ready:
        scheduler = JobScheduler()
        scheduler.add_interval_job(
            "projector_catch_up", projector_catch_up_job, settings.projector_run_interval,
            name="Projector catch-up"
        )
        scheduler.add_interval_job(
            "sla_breach_scan", sla_scan_job, settings.sla_scan_interval,
            name="SLA breach scan"
        )
        await scheduler.start()

    logger.info("Initializing LLM client")
    try:
        llm_client = create_llm_client()
    except ApplicationException as e:
        logger.warning("LLM client not configured", extra={"error": e.message})
        llm_client = None

    app.state.llm_client = llm_client
    app.state.settings = settings

    logger.info("Command Center started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Command Center")

    if scheduler:
        await scheduler.stop()

    if sla_config_manager:
        sla_config_manager.stop_watching()

    await slack_client.close()

    await close_database()

    logger.info("Command Center shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Momentum Command Center API",
    description="""
    ## Event-sourced CRM Command Center

    ### Event Store
    - `POST /events/{aggregate_type}/{aggregate_id}` - Append an event (optimistic concurrency)
    - `GET /events/{aggregate_id}` - Read a stream

    ### Projectors
    - `GET /projectors` - Checkpoint status of every projector
    - `POST /projectors/{name}/run` - Apply new events
    - `POST /projectors/{name}/rebuild` - Replay the whole log
    - `POST /projectors/{name}/resume` - Resume after a halt
    - `POST /projectors/scan-sla` - Run the SLA breach scanner

    ### Support Cases
    - `POST /support-cases` - Open a case
    - `POST /support-cases/{id}/severity` - Change severity (SLA due dates are recomputed)

    ### Command Center
    - `GET /command-center?user_id=...` - Tiered action feed
    - `PATCH /command-center/{id}/status` - Start, complete, snooze, dismiss
    - `GET /attention-flags` - Open attention flags
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(events_router)
app.include_router(projectors_router)
app.include_router(support_router)
app.include_router(command_center_router)
app.include_router(flags_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database, SLA config, scheduler and LLM client state.
    """
    checks = {
        "database": "connected" if database_ready else "not_configured",
        "sla_config": "loaded" if sla_config_manager else "not_loaded",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "llm_client": "available" if llm_client else "not_configured",
    }

    return {
        "status": "healthy" if database_ready else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Momentum Command Center",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "momentum.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
