"""
Scheduled attendance jobs

- every day at 23:59 employees without a record are marked ABSENT
- every Sunday at 00:00 employees without a record are marked HOLIDAY

Both jobs only insert missing records, so re-running them is harmless.
"""

import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from app.config import SCHEDULER_TIMEZONE
from app.attendance.attendance_models import AttendanceStatus
from app.attendance.attendance_utils import midnight
from app.attendance.admin_attendance_service import mark_holiday_for_all

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)


async def mark_absentees(today: Optional[datetime] = None) -> int:
    today = midnight(today)
    try:
        count = await mark_holiday_for_all(today, "Auto-marked absent", status=AttendanceStatus.ABSENT)
        logger.info("Absent sweep for %s marked %d employees", today.date().isoformat(), count)
        return count
    except Exception as e:
        logger.error("Absent sweep failed: %s", e, exc_info=True)
        return 0


async def mark_sunday_holiday(today: Optional[datetime] = None) -> int:
    today = midnight(today)
    if today.weekday() != 6:
        logger.info("Sunday holiday job skipped, %s is not a Sunday", today.date().isoformat())
        return 0
    try:
        count = await mark_holiday_for_all(today, "Weekly holiday")
        logger.info("Sunday holiday for %s marked %d employees", today.date().isoformat(), count)
        return count
    except Exception as e:
        logger.error("Sunday holiday job failed: %s", e, exc_info=True)
        return 0


def register_jobs(target: AsyncIOScheduler = scheduler) -> AsyncIOScheduler:
    target.add_job(
        mark_absentees,
        CronTrigger(hour=23, minute=59, timezone=SCHEDULER_TIMEZONE),
        id="attendance_absent_sweep",
        replace_existing=True,
    )
    target.add_job(
        mark_sunday_holiday,
        CronTrigger(day_of_week="sun", hour=0, minute=0, timezone=SCHEDULER_TIMEZONE),
        id="attendance_sunday_holiday",
        replace_existing=True,
    )
    return target


def start_scheduler():
    if scheduler.running:
        return
    register_jobs()
    scheduler.start()
    logger.info("Attendance scheduler started (%s)", SCHEDULER_TIMEZONE)


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Attendance scheduler stopped")
