"""
Operator actions around department report reminders: a one-off reminder
for a report, a manual escalation of a late report, and the list of
upcoming deadlines.

Manual sends bypass the once-per-day check; they still count towards the
report's reminder bookkeeping.
"""
import logging
from datetime import date, datetime, timezone

from reminders.config import Settings, get_settings
from reminders.db.models import ReminderType
from reminders.errors import ConfigurationError, NotFoundError
from reminders.services.deadline_service import as_utc, compute_deadline, local_today
from reminders.services.escalation_policy import ESCALATION_MIN_LEVEL, type_tag
from reminders.services.notification_service import dispatch
from reminders.services.recipient_service import RecipientResolver
from reminders.services.report_service import build_obligation, read_obligation
from reminders.services.rule_service import resolve_rules
from reminders.services.scheduler_service import window_dates
from reminders.services.types import DispatchDecision, ReminderRule, UpcomingDeadline

logger = logging.getLogger(__name__)


async def send_reminder_for_report(store, report_id: int, reminder_type: ReminderType,
                                   escalation_level: int = 1, now: datetime | None = None) -> int:
    """Send the configured reminder of one kind/level for a report right now."""
    now = as_utc(now) if now else datetime.now(timezone.utc)

    report = await store.get_report(report_id)
    if report is None:
        raise NotFoundError(f"Report {report_id} not found")

    assignment = await store.get_assignment(report.unit_id, report.category_id)
    if assignment is None:
        raise NotFoundError(f"No assignment for department {report.unit_id}, category {report.category_id}")

    rules = resolve_rules(await store.list_reminder_rules(report.unit_id), report.unit_id)
    rule = next(
        (r for r in rules if r.kind == reminder_type and r.escalation_level == escalation_level),
        None,
    )
    if rule is None:
        raise NotFoundError(f"No reminder config for {reminder_type.value} level {escalation_level}")

    deadline = compute_deadline(assignment.deadline_time, assignment.timezone, report.report_date)
    obligation = build_obligation(report, deadline, now)
    decision = DispatchDecision(
        rule=rule,
        type_tag=type_tag(rule.kind, rule.escalation_level),
        descriptors=tuple(rule.notify_users),
    )

    user_ids = await RecipientResolver(store).resolve(decision.descriptors, assignment, report.unit_id)
    if not user_ids:
        logger.warning(f"No users to notify for report {report_id}, {reminder_type.value} level {escalation_level}")
        return 0

    written = await dispatch(store, decision, obligation, assignment, user_ids, now)
    await store.commit()
    return written


async def escalate_late_report(store, unit_id: int, report_date: date, category_id: int | None = None,
                               now: datetime | None = None, settings: Settings | None = None) -> int:
    """Escalate a late, unsubmitted report to the unit manager and the escalation role."""
    settings = settings or get_settings()
    now = as_utc(now) if now else datetime.now(timezone.utc)

    assignment = await store.get_assignment(unit_id, category_id)
    if assignment is None:
        raise NotFoundError(f"No assignment for department {unit_id}, category {category_id}")

    obligation = await read_obligation(store, assignment, report_date, now)
    if obligation is None:
        raise NotFoundError(f"No report for department {unit_id} on {report_date}")

    if obligation.is_submitted or not obligation.is_late:
        logger.warning(f"Report {obligation.id} is not overdue, nothing to escalate")
        return 0

    rules = resolve_rules(await store.list_reminder_rules(unit_id), unit_id)
    rule = next(
        (r for r in rules
         if r.kind == ReminderType.AFTER_DEADLINE and r.escalation_level >= ESCALATION_MIN_LEVEL),
        None,
    )
    level = rule.escalation_level if rule else ESCALATION_MIN_LEVEL
    descriptors = ("manager-of-unit", f"role:{settings.escalation_role}")
    decision = DispatchDecision(
        rule=rule or ReminderRule(
            id=0, unit_id=unit_id, kind=ReminderType.AFTER_DEADLINE,
            escalation_level=level, notify_users=descriptors,
        ),
        type_tag=type_tag(ReminderType.AFTER_DEADLINE, level),
        descriptors=descriptors,
        cross_escalation=True,
    )

    user_ids = await RecipientResolver(store).resolve(decision.descriptors, assignment, unit_id)
    if not user_ids:
        logger.warning(f"No users to notify for escalation of report {obligation.id}")
        return 0

    written = await dispatch(store, decision, obligation, assignment, user_ids, now)
    await store.commit()
    return written


async def list_upcoming_deadlines(store, days_ahead: int | None = None, now: datetime | None = None,
                                  settings: Settings | None = None) -> list[UpcomingDeadline]:
    """Deadlines of every active assignment from today through ``days_ahead`` days."""
    settings = settings or get_settings()
    now = as_utc(now) if now else datetime.now(timezone.utc)
    if days_ahead is None:
        days_ahead = settings.upcoming_days_ahead

    today = local_today(now, settings.reference_timezone)
    assignments = await store.list_active_assignments()

    upcoming = []
    for report_date in window_dates(today, 0, days_ahead):
        for assignment in assignments:
            try:
                deadline = compute_deadline(assignment.deadline_time, assignment.timezone, report_date)
            except ConfigurationError as e:
                logger.warning(f"Skipping assignment {assignment.id}: {e}")
                continue
            upcoming.append(UpcomingDeadline(
                unit_id=assignment.unit_id,
                unit_name=assignment.unit_name or "Unknown",
                category_id=assignment.category_id,
                report_date=report_date,
                deadline=deadline,
                assigned_user_id=assignment.assigned_user_id,
                assigned_user_name=assignment.assigned_user_name or "Unassigned",
            ))

    return sorted(upcoming, key=lambda d: (d.deadline, d.unit_id))
