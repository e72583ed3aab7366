"""
Formatters: titles and bodies of reminder notifications.
Every message names the department, the report date and either the
deadline or how many days late the report is.
"""
from datetime import date, datetime

from reminders.db.models import ReminderType


def fmt_date(d: date) -> str:
    return d.strftime("%d %b %Y")


def fmt_deadline(dt: datetime) -> str:
    return dt.strftime("%d %b %Y %H:%M UTC")


def plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def unit_label(unit_name: str | None) -> str:
    return unit_name or "Department"


def reminder_text(kind: ReminderType, escalation_level: int, unit_name: str | None,
                  report_date: date, deadline: datetime, days_late: int) -> tuple[str, str]:
    """(title, message) for an ordinary reminder rule."""
    unit = unit_label(unit_name)
    day = fmt_date(report_date)

    if kind == ReminderType.BEFORE_DEADLINE:
        return (
            f"Department Report Due Soon - {unit}",
            f"The daily report for {day} is due on {fmt_deadline(deadline)}. "
            f"Please submit your report before the deadline.",
        )

    if kind == ReminderType.ON_DEADLINE:
        return (
            f"Department Report Deadline Today - {unit}",
            f"The daily report for {day} is due today at {fmt_deadline(deadline)}. "
            f"Please submit your report as soon as possible.",
        )

    title = (
        f"Escalation: Overdue Department Report - {unit}"
        if escalation_level > 1
        else f"Department Report Overdue - {unit}"
    )
    if days_late > 0:
        message = (
            f"The daily report for {day} is {plural_days(days_late)} overdue. "
            f"Please submit immediately."
        )
    else:
        message = (
            f"The daily report for {day} missed its deadline of {fmt_deadline(deadline)}. "
            f"Please submit immediately."
        )
    return title, message


def escalation_text(unit_name: str | None, report_date: date, days_late: int) -> tuple[str, str]:
    """(title, message) for the manager / admin escalation of an overdue report."""
    unit = unit_label(unit_name)
    return (
        f"Escalation: Overdue Department Report - {unit}",
        f"The daily report for {fmt_date(report_date)} is {plural_days(days_late)} overdue "
        f"and requires immediate attention.",
    )
