"""
In-process schedule for eBay order reconciliation.

The job only exists when EBAY_ORDERS_SYNC_ENABLED is set; deployments that
trigger reconciliation externally (cron, the HTTP route, the CLI) leave it off.
"""

import logging
from typing import Any, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import ReconciliationConfig, get_settings
from app.database import get_session_factory
from app.services.order_sale_processor import reconcile_marketplace_orders

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None

ORDERS_SYNC_JOB_ID = "ebay_orders_sync"


async def ebay_orders_sync_task():
    """Run one reconciliation over every active eBay account"""
    try:
        logger.info("=== SCHEDULED EBAY ORDERS SYNC STARTING ===")
        settings = get_settings()
        summary = await reconcile_marketplace_orders(
            get_session_factory(),
            ReconciliationConfig.from_settings(settings),
            http_timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS,
        )
        logger.info(f"Scheduled eBay orders sync completed: {summary.to_dict()}")
    except Exception as e:
        logger.exception(f"Error in scheduled eBay orders sync: {str(e)}")


def job_listener(event):
    if event.code == EVENT_JOB_MAX_INSTANCES:
        logger.warning(f"Skipped {event.job_id}: previous run still in progress")
    elif getattr(event, "exception", None):
        logger.error(f"Job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} finished (scheduled for {event.scheduled_run_time})")


def create_scheduler() -> AsyncIOScheduler:
    global scheduler

    if scheduler is not None:
        return scheduler

    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)

    settings = get_settings()
    if not settings.EBAY_ORDERS_SYNC_ENABLED:
        logger.info("Scheduled eBay orders sync is disabled. Set EBAY_ORDERS_SYNC_ENABLED=true to enable")
        return scheduler

    scheduler.add_job(
        ebay_orders_sync_task,
        IntervalTrigger(minutes=settings.EBAY_ORDERS_SYNC_INTERVAL_MINUTES),
        id=ORDERS_SYNC_JOB_ID,
        name="Sync eBay Orders",
        replace_existing=True,
        max_instances=1,  # one reconciliation at a time
        coalesce=True,
        misfire_grace_time=600,
    )
    logger.info(f"Scheduled eBay orders sync every {settings.EBAY_ORDERS_SYNC_INTERVAL_MINUTES} minutes")
    return scheduler


async def start_scheduler():
    sched = create_scheduler()
    if sched.running:
        return

    sched.start()
    jobs = sched.get_jobs()
    logger.info(f"Scheduler started with {len(jobs)} job(s): {[job.id for job in jobs]}")


async def stop_scheduler():
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


async def get_scheduler_status() -> Dict[str, Any]:
    """Scheduler state plus the next run of each job, for /health/scheduler"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
                "trigger": str(job.trigger),
            }
            for job in scheduler.get_jobs()
        ],
    }
