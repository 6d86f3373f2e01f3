"""
Scheduled tasks for the inventory sync engine.

Two cron jobs run inside an AsyncIOScheduler: a full sync of every active
store integration and a sweep of all active stock alerts. Schedules come
from SCHEDULED_SYNC_CRON and ALERT_CHECK_CRON.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import get_settings
from app.core.enums import SyncTrigger
from app.database import get_session
from app.services.inventory_sync_service import InventorySyncService
from app.services.stock_alert_service import StockAlertService

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def sync_all_stores_task():
    """Task to sync all active store integrations"""
    try:
        logger.info("=== SCHEDULED SYNC STARTING ===")
        async with get_session() as db:
            result = await InventorySyncService(db).sync_all_active_integrations(trigger=SyncTrigger.SCHEDULED)

        results = result.data or {}
        failed = [integration_id for integration_id, r in results.items() if not r.success]
        logger.info(f"Scheduled sync finished: {len(results) - len(failed)}/{len(results)} stores synced")
        if failed:
            logger.warning(f"Scheduled sync failures for integrations: {failed}")
    except Exception as e:
        logger.exception(f"Error in scheduled sync task: {str(e)}")


async def check_alerts_task():
    """Task to evaluate every active stock alert"""
    try:
        async with get_session() as db:
            triggered = await StockAlertService(db).check_all_alerts()
        logger.info(f"Scheduled alert check triggered {len(triggered)} alerts")
    except Exception as e:
        logger.exception(f"Error in alert check task: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings=None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    scheduler.add_job(
        sync_all_stores_task,
        CronTrigger.from_crontab(settings.SCHEDULED_SYNC_CRON),
        id="sync_all_stores",
        name="Sync All Stores",
        replace_existing=True,
        max_instances=1,  # Only one sync at a time
        misfire_grace_time=3600,
    )
    logger.info(f"Scheduled sync job added with schedule: {settings.SCHEDULED_SYNC_CRON}")

    scheduler.add_job(
        check_alerts_task,
        CronTrigger.from_crontab(settings.ALERT_CHECK_CRON),
        id="check_stock_alerts",
        name="Check Stock Alerts",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Alert check job added with schedule: {settings.ALERT_CHECK_CRON}")

    return scheduler


async def start_scheduler():
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler()

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")
        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped successfully")
    scheduler = None


def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            "trigger": str(job.trigger),
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info,
    }
