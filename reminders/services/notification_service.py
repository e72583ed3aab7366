import logging
from datetime import datetime

from reminders.services.types import (
    Assignment, DispatchDecision, NotificationRecord, Obligation,
)
from reminders.utils.formatters import escalation_text, reminder_text

logger = logging.getLogger(__name__)


def build_payload(decision: DispatchDecision, obligation: Obligation) -> dict:
    data = {
        "department_report_id": obligation.id,
        "department_id": obligation.unit_id,
        "report_date": obligation.report_date.isoformat(),
        "deadline": obligation.deadline.isoformat(),
        "reminder_type": decision.kind.value,
        "escalation_level": decision.escalation_level,
    }
    if obligation.is_late:
        data["days_late"] = obligation.days_late
    if decision.cross_escalation:
        data["cross_escalation"] = True
    return data


def build_notifications(decision: DispatchDecision, obligation: Obligation, unit_name: str | None,
                        recipients: list[int], now: datetime) -> list[NotificationRecord]:
    """One outbox record per recipient, all sharing the same text and payload."""
    if decision.cross_escalation:
        title, message = escalation_text(unit_name, obligation.report_date, obligation.days_late)
    else:
        title, message = reminder_text(
            decision.kind, decision.escalation_level, unit_name,
            obligation.report_date, obligation.deadline, obligation.days_late,
        )
    data = build_payload(decision, obligation)

    return [
        NotificationRecord(
            user_id=user_id,
            type=decision.type_tag,
            title=title,
            message=message,
            data=dict(data),
            created_at=now,
            entity_id=obligation.id,
            escalation_level=decision.escalation_level,
        )
        for user_id in recipients
    ]


async def dispatch(store, decision: DispatchDecision, obligation: Obligation,
                   assignment: Assignment | None, recipients: list[int], now: datetime) -> int:
    """
    Write the batch, then bump the report's reminder counter once.

    Returns the number of notifications written. Commit is left to the caller.
    """
    if not recipients:
        return 0

    unit_name = assignment.unit_name if assignment else None
    if unit_name is None:
        unit_name = await store.get_unit_name(obligation.unit_id)

    records = build_notifications(decision, obligation, unit_name, recipients, now)
    written = await store.write_notifications(records)
    await store.update_bookkeeping(obligation.id, 1, now)

    logger.info(
        f"Report {obligation.id} ({obligation.report_date}): {decision.type_tag} "
        f"level {decision.escalation_level} sent to {written} user(s)"
        + (" [cross escalation]" if decision.cross_escalation else "")
    )
    return written
