"""
Escalation policy: decides which reminder rules fire for an obligation today.

Each (unit, category, date, rule) moves Pending → Due → Fired, and an
overdue obligation may additionally be Escalated. Nothing carries over
between days: the only memory is the notifications outbox, consulted by
the dedup check before anything is written.

    before_deadline  due when today == deadline_date - days_before
    on_deadline      due when today == deadline_date
    after_deadline   due when today == deadline_date + days_after,
                     and only while unsubmitted or submitted late

Cross-level escalation runs after the ordinary rules: an unsubmitted
obligation more than one day late, for a unit that has an after_deadline
rule at level 2 or higher, is escalated to the unit manager and the
escalation role, on top of whatever the ordinary rules fired.
"""
from datetime import date, timedelta

from reminders.db.models import NotificationType, ReminderType
from reminders.services.types import DispatchDecision, Obligation, ReminderRule

ESCALATION_MIN_LEVEL = 2
ESCALATION_MIN_DAYS_LATE = 1


def type_tag(kind: ReminderType, escalation_level: int) -> str:
    if kind == ReminderType.BEFORE_DEADLINE:
        return NotificationType.DUE_SOON.value
    if kind == ReminderType.ON_DEADLINE:
        return NotificationType.DEADLINE_TODAY.value
    if escalation_level > 1:
        return NotificationType.ESCALATION.value
    return NotificationType.LATE.value


def due_date(rule: ReminderRule, deadline_date: date) -> date | None:
    """The single day on which a rule becomes due, None if misconfigured."""
    if rule.kind == ReminderType.ON_DEADLINE:
        return deadline_date
    if rule.kind == ReminderType.BEFORE_DEADLINE:
        if not rule.days_before or rule.days_before < 0:
            return None
        return deadline_date - timedelta(days=rule.days_before)
    if not rule.days_after or rule.days_after < 0:
        return None
    return deadline_date + timedelta(days=rule.days_after)


def is_due(rule: ReminderRule, deadline_date: date, today: date) -> bool:
    return due_date(rule, deadline_date) == today


def is_actionable(rule: ReminderRule, obligation: Obligation) -> bool:
    """An on-time submission cancels every after-deadline rule."""
    if rule.kind != ReminderType.AFTER_DEADLINE:
        return True
    return not obligation.is_submitted or obligation.is_late


def evaluate(rules: list[ReminderRule], obligation: Obligation, today: date) -> list[DispatchDecision]:
    decisions = []
    for rule in rules:
        if not is_due(rule, obligation.report_date, today):
            continue
        if not is_actionable(rule, obligation):
            continue
        decisions.append(DispatchDecision(
            rule=rule,
            type_tag=type_tag(rule.kind, rule.escalation_level),
            descriptors=tuple(rule.notify_users),
        ))
    return decisions


def escalation_decision(rules: list[ReminderRule], obligation: Obligation,
                        escalation_role: str) -> DispatchDecision | None:
    if obligation.is_submitted or not obligation.is_late:
        return None
    if obligation.days_late <= ESCALATION_MIN_DAYS_LATE:
        return None

    rule = next(
        (r for r in rules
         if r.kind == ReminderType.AFTER_DEADLINE and r.escalation_level >= ESCALATION_MIN_LEVEL),
        None,
    )
    if rule is None:
        return None

    return DispatchDecision(
        rule=rule,
        type_tag=type_tag(rule.kind, rule.escalation_level),
        descriptors=("manager-of-unit", f"role:{escalation_role}"),
        cross_escalation=True,
    )
