import logging
from datetime import datetime

from reminders.db.models import ReminderType
from reminders.services.escalation_policy import type_tag

logger = logging.getLogger(__name__)


async def already_dispatched(store, obligation_id: int, kind: ReminderType,
                             escalation_level: int, day_start: datetime) -> bool:
    """
    True when a batch for (obligation, kind, level) was written since
    ``day_start``. Must be checked before writing.

    The check and the following write are not atomic: two overlapping runs
    can both pass it. Runs are serialized by the driver's single-flight lock.
    """
    tag = type_tag(kind, escalation_level)
    found = await store.find_notifications_today(obligation_id, tag, escalation_level, day_start)
    if found:
        logger.debug(
            f"Report {obligation_id}: {tag} level {escalation_level} already sent "
            f"since {day_start:%Y-%m-%d %H:%M} UTC"
        )
    return found
