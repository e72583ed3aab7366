"""
Reminder scheduler run: walks the date window for every active assignment
and writes the reminders and escalations that are due today.

    for assignment × date in [today - back, today + ahead]:
        obligation → rules → policy → dedup → recipients → write → commit
        then the cross-level escalation for the same obligation

Only one run executes at a time per process; an overlapping call returns
immediately with ``skipped=True``.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta, timezone

from reminders.config import Settings, get_settings
from reminders.errors import DataAccessError
from reminders.services.dedup_service import already_dispatched
from reminders.services.deadline_service import as_utc, local_today, start_of_day
from reminders.services.escalation_policy import escalation_decision, evaluate
from reminders.services.notification_service import dispatch
from reminders.services.recipient_service import RecipientResolver
from reminders.services.report_service import read_obligation
from reminders.services.rule_service import RuleResolver
from reminders.services.types import (
    Assignment, DispatchDecision, Obligation, RunItemError, RunResult,
)

logger = logging.getLogger(__name__)

_run_lock = asyncio.Lock()


def is_running() -> bool:
    return _run_lock.locked()


def window_dates(today: date, days_back: int, days_ahead: int) -> list[date]:
    return [today + timedelta(days=offset) for offset in range(-days_back, days_ahead + 1)]


class ReminderScheduler:

    def __init__(self, store, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    async def run(self, now: datetime | None = None) -> RunResult:
        now = as_utc(now) if now else datetime.now(timezone.utc)

        if is_running():
            logger.warning("Reminder run already in progress, skipping this one")
            return RunResult(processed_at=now, skipped=True)

        async with _run_lock:
            return await self._run(now)

    async def _run(self, now: datetime) -> RunResult:
        tz = self.settings.reference_timezone
        today = local_today(now, tz)
        day_start = start_of_day(now, tz)
        result = RunResult(processed_at=now)

        try:
            assignments = await self.store.list_active_assignments()
            rules = RuleResolver(self.store)
            await rules.preload([None] + [a.unit_id for a in assignments])
        except DataAccessError:
            logger.exception("Could not load assignments or reminder rules, aborting run")
            raise

        recipients = RecipientResolver(self.store)
        dates = window_dates(today, self.settings.window_days_back, self.settings.window_days_ahead)
        logger.info(
            f"Reminder run at {now:%Y-%m-%d %H:%M} UTC: {len(assignments)} assignment(s), "
            f"{dates[0]} to {dates[-1]}"
        )

        for assignment in assignments:
            unit_rules = await rules.rules_for(assignment.unit_id)
            for report_date in dates:
                await self._process(assignment, report_date, unit_rules, recipients,
                                    now, today, day_start, result)

        logger.info(
            f"Reminder run done: {result.reminders_sent} reminder(s), "
            f"{result.escalations_sent} escalation(s), "
            f"{result.notifications_created} notification(s), {len(result.errors)} error(s)"
        )
        return result

    async def _process(self, assignment: Assignment, report_date: date, unit_rules,
                       recipients: RecipientResolver, now: datetime, today: date,
                       day_start: datetime, result: RunResult):
        try:
            obligation = await read_obligation(self.store, assignment, report_date, now)
        except Exception as e:
            await self._fail(result, assignment, report_date, None, e)
            return

        if obligation is None:
            return

        for decision in evaluate(unit_rules, obligation, today):
            written = await self._fire(decision, obligation, assignment, recipients,
                                       now, day_start, result)
            if written:
                result.reminders_sent += 1
                result.notifications_created += written

        escalation = escalation_decision(unit_rules, obligation, self.settings.escalation_role)
        if escalation is not None:
            written = await self._fire(escalation, obligation, assignment, recipients,
                                       now, day_start, result)
            if written:
                result.escalations_sent += 1
                result.notifications_created += written

    async def _fire(self, decision: DispatchDecision, obligation: Obligation, assignment: Assignment,
                    recipients: RecipientResolver, now: datetime, day_start: datetime,
                    result: RunResult) -> int:
        try:
            if await already_dispatched(self.store, obligation.id, decision.kind,
                                        decision.escalation_level, day_start):
                return 0

            user_ids = await recipients.resolve(decision.descriptors, assignment, obligation.unit_id)
            if not user_ids:
                logger.warning(
                    f"No recipients for report {obligation.id} ({obligation.report_date}), "
                    f"{decision.kind.value} level {decision.escalation_level}"
                )
                return 0

            written = await dispatch(self.store, decision, obligation, assignment, user_ids, now)
            await self.store.commit()
            return written
        except Exception as e:
            await self._fail(result, assignment, obligation.report_date, decision, e)
            return 0

    async def _fail(self, result: RunResult, assignment: Assignment, report_date: date,
                    decision: DispatchDecision | None, error: Exception):
        kind = decision.kind.value if decision else None
        level = decision.escalation_level if decision else None
        logger.exception(
            f"Reminder evaluation failed: unit {assignment.unit_id}, category {assignment.category_id}, "
            f"date {report_date}, rule {kind} level {level}: {error}"
        )
        try:
            await self.store.rollback()
        except DataAccessError:
            logger.exception("Rollback failed")

        result.errors.append(RunItemError(
            unit_id=assignment.unit_id,
            category_id=assignment.category_id,
            report_date=report_date,
            reminder_type=kind,
            escalation_level=level,
            error=str(error),
        ))
