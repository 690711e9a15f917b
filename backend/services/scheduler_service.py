"""
Background scheduler.
Handles:
- Nightly reconciliation of users' points_total against the points ledger
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from backend.constants import BALANCE_RECONCILE_HOUR
from backend.database import SessionLocal
from backend.services.points_service import PointsService
from backend.storage import DatabaseStorage

logger = logging.getLogger("commute_tracker.scheduler")

# Create scheduler instance
scheduler = AsyncIOScheduler()


async def run_balance_reconciliation():
    """Job: bring every user's cached balance back in line with the ledger"""
    db = SessionLocal()
    try:
        corrected = PointsService(DatabaseStorage(db)).reconcile_all_balances()
        if corrected:
            logger.warning(f"Balance reconciliation corrected {corrected} user(s)")
        else:
            logger.info("Balance reconciliation: all balances match the ledger")
    except Exception as e:
        logger.error(f"Scheduler Error (Balance reconciliation): {e}")
    finally:
        db.close()


def start_scheduler():
    """Start the scheduler"""
    if not scheduler.running:
        scheduler.add_job(
            run_balance_reconciliation,
            CronTrigger(hour=BALANCE_RECONCILE_HOUR, minute=0),
            id='balance_reconciliation',
            replace_existing=True
        )

        scheduler.start()
        logger.info(">>> APScheduler STARTED <<<")
        logger.info(f"Scheduled jobs: {[job.id for job in scheduler.get_jobs()]}")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
