import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from reminders.config import get_settings
from reminders.db.session import async_session, init_db
from reminders.services.scheduler_service import ReminderScheduler
from reminders.services.store import SqlReminderStore

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def run_department_report_reminders():
    """Evaluate the reminder window and write due reminders / escalations."""
    async with async_session() as session:
        result = await ReminderScheduler(SqlReminderStore(session), settings).run()

    if result.skipped:
        return
    # Each failure was already logged with its traceback by the scheduler
    if result.errors:
        logger.warning(f"Reminder run finished with {len(result.errors)} failed evaluation(s)")


async def main():
    await init_db()

    scheduler = AsyncIOScheduler()

    # Department report reminders, hourly by default
    scheduler.add_job(
        run_department_report_reminders, "interval",
        seconds=settings.check_reminders_interval,
        max_instances=1, coalesce=True,
    )

    scheduler.start()
    logger.info("Scheduler started")

    # First pass right away instead of waiting a full interval
    await run_department_report_reminders()

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
