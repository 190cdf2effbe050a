"""ARQ worker configuration.

Defines the worker settings including registered jobs,
cron schedules, and startup/shutdown hooks.
"""

from typing import Any, ClassVar

import structlog
from arq import cron

from rolegate.config import get_settings
from rolegate.core.database import create_engine, create_session_factory
from rolegate.core.jobs.registry import get_redis_settings
from rolegate.core.jobs.tasks.reconcile import (
    reconcile_actor_snapshot,
    reconcile_all_snapshots,
    reconcile_role_snapshots,
)
from rolegate.core.logging import configure_logging
from rolegate.permissions.engine import PermissionEngine
from rolegate.storage.sql import SqlAlchemyStorage


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize resources for the worker.

    Called once when the worker starts. Builds a permission engine
    that reconciles inline, since it already is the background.

    Args:
        ctx: Worker context dict (shared across all jobs)
    """
    settings = get_settings()
    configure_logging(settings)

    log = structlog.get_logger()
    log.info("worker_startup", environment=settings.environment)

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    permission_engine = PermissionEngine(
        SqlAlchemyStorage(session_factory),
        settings.model_copy(
            update={
                "reconcile_backend": "inline",
                "bootstrap_on_start": False,
                "role_poll_interval_seconds": None,
            }
        ),
    )
    await permission_engine.start()

    # Store in context for job access
    ctx["db_engine"] = engine
    ctx["permission_engine"] = permission_engine

    log.info("worker_startup_complete")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when the worker stops.

    Args:
        ctx: Worker context dict
    """
    log = structlog.get_logger()
    log.info("worker_shutdown")

    permission_engine = ctx.get("permission_engine")
    if permission_engine:
        await permission_engine.close()

    # Close database engine
    engine = ctx.get("db_engine")
    if engine:
        await engine.dispose()
        log.info("database_engine_disposed")

    log.info("worker_shutdown_complete")


class WorkerSettings:
    """ARQ worker settings.

    Run the worker with:
        arq rolegate.core.jobs.worker.WorkerSettings
    """

    # Registered job functions
    functions: ClassVar[list[Any]] = [
        reconcile_role_snapshots,
        reconcile_actor_snapshot,
        reconcile_all_snapshots,
    ]

    # Cron jobs (scheduled tasks)
    cron_jobs: ClassVar[list[Any]] = [
        # Full reconciliation nightly at 3 AM
        cron(reconcile_all_snapshots, hour=3, minute=0),
    ]

    # Worker lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Redis connection
    redis_settings = get_redis_settings()

    # Worker configuration
    max_jobs = 10  # Maximum concurrent jobs
    job_timeout = 300  # 5 minutes per job
    keep_result = 3600  # Keep results for 1 hour
    retry_jobs = True  # Retry failed jobs
    max_tries = 3  # Maximum retry attempts
