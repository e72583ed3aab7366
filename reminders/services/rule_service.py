import logging

from reminders.db.models import ReminderType
from reminders.services.types import ReminderRule

logger = logging.getLogger(__name__)

KIND_ORDER = {
    ReminderType.BEFORE_DEADLINE: 0,
    ReminderType.ON_DEADLINE: 1,
    ReminderType.AFTER_DEADLINE: 2,
}


def resolve_rules(rules: list[ReminderRule], unit_id: int | None = None) -> list[ReminderRule]:
    """
    Pick one rule per (kind, escalation level) for a unit.

    A unit-scoped rule replaces the global default of the same kind and
    level; the two are never both returned. Inactive rules and rules scoped
    to other units are ignored. Result is ordered by level, then
    before → on → after.
    """
    winners: dict[tuple[ReminderType, int], ReminderRule] = {}

    for rule in rules:
        if not rule.is_active:
            continue
        if rule.unit_id is not None and rule.unit_id != unit_id:
            continue

        key = (rule.kind, rule.escalation_level)
        current = winners.get(key)
        if current is None:
            winners[key] = rule
        elif current.is_global and not rule.is_global:
            winners[key] = rule
        elif current.is_global == rule.is_global:
            logger.warning(
                f"Duplicate reminder rules for unit {unit_id}, {rule.kind.value} level "
                f"{rule.escalation_level}: keeping rule {current.id}, ignoring rule {rule.id}"
            )

    return sorted(
        winners.values(),
        key=lambda r: (r.escalation_level, KIND_ORDER[r.kind], r.id),
    )


class RuleResolver:
    """Loads and caches the resolved rule set per unit for one run."""

    def __init__(self, store):
        self.store = store
        self._cache: dict[int | None, list[ReminderRule]] = {}

    async def preload(self, unit_ids):
        """Fetch rules for every unit up front; failures propagate to the caller."""
        for unit_id in dict.fromkeys(unit_ids):
            await self.rules_for(unit_id)

    async def rules_for(self, unit_id: int | None) -> list[ReminderRule]:
        if unit_id not in self._cache:
            rules = await self.store.list_reminder_rules(unit_id)
            self._cache[unit_id] = resolve_rules(rules, unit_id)
        return self._cache[unit_id]
