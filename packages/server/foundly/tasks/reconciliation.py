"""
ARQ background task: periodic membership reconciliation sweep.

Scheduled hourly at ``reconcile_cron_minute`` when enabled.
"""

from __future__ import annotations

import structlog
from arq import cron
from arq.connections import RedisSettings

from foundly.core.config import get_settings
from foundly.core.logging import configure_logging
from foundly.core.store import get_store
from foundly.services.reconciler import reconcile

log = structlog.get_logger()
settings = get_settings()


async def reconcile_memberships(ctx: dict) -> dict:
    """Run one sweep and return the report as a dict.

    ``ctx["store"]`` overrides the configured store.
    """
    store = ctx.get("store") or get_store()
    report = await reconcile(store)
    if report.residual_inconsistencies or report.failures:
        log.warning(
            "reconcile.batch_incomplete",
            residual=report.residual_inconsistencies,
            failures=report.failures,
        )
    return report.model_dump()


async def startup(ctx: dict) -> None:
    configure_logging(settings.log_level, settings.log_format)
    log.info("worker.started", schedule_enabled=settings.reconcile_schedule_enabled)


def _cron_jobs() -> list:
    if not settings.reconcile_schedule_enabled:
        return []
    return [cron(reconcile_memberships, minute=settings.reconcile_cron_minute)]


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [reconcile_memberships]
    cron_jobs = _cron_jobs()
    on_startup = startup
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
