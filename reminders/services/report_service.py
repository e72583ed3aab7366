from datetime import date, datetime

from reminders.db.models import ReportStatus
from reminders.services.deadline_service import as_utc, compute_deadline, days_late
from reminders.services.types import Assignment, Obligation, ReportState


def build_obligation(report: ReportState, deadline: datetime, now: datetime) -> Obligation:
    """Derive lateness from the stored report and its deadline."""
    submitted_at = as_utc(report.submitted_at)
    if report.status == ReportStatus.SUBMITTED:
        is_late = submitted_at is not None and submitted_at > deadline
    else:
        is_late = as_utc(now) > deadline

    return Obligation(
        report=report,
        deadline=deadline,
        is_late=is_late,
        days_late=days_late(now, deadline) if is_late else 0,
    )


async def read_obligation(store, assignment: Assignment, report_date: date, now: datetime) -> Obligation | None:
    """
    Return the obligation for an assignment on a date, or None when no
    report row exists yet. Nothing is created here.
    """
    deadline = compute_deadline(assignment.deadline_time, assignment.timezone, report_date)
    report = await store.get_obligation(assignment.unit_id, assignment.category_id, report_date)
    if report is None:
        return None
    return build_obligation(report, deadline, now)
