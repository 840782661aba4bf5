from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from app.core.config import AppConfig
from app.core.views import ViewRegistry

_scheduler: BackgroundScheduler | None = None


def start_scheduler(config: AppConfig, registry: ViewRegistry) -> BackgroundScheduler:
    """Start the background scheduler that reconciles open views

    Change events already refresh views within this process; the interval
    job re-reads them anyway so writes from other processes sharing the
    store, and day rollover on the roster, are picked up.

    Args:
        config: clinic configuration
        registry: open live views

    Returns:
        BackgroundScheduler instance
    """
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
    scheduler = BackgroundScheduler()
    clinic = config.clinic
    if clinic.enabled and clinic.roster_refresh_seconds > 0:
        scheduler.add_job(
            registry.refresh_all,
            "interval",
            seconds=clinic.roster_refresh_seconds,
            id=f"reconcile-{clinic.clinic_id}",
            replace_existing=True,
        )
    scheduler.start()
    _scheduler = scheduler
    return scheduler


def stop_scheduler() -> None:
    """Stop the running scheduler, if any"""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None
