from datetime import date, datetime, time, timezone

import pytest

from reminders.db.models import NotificationType, ReminderType, ReportStatus
from reminders.errors import DataAccessError, PartialRunError
from reminders.services import scheduler_service
from reminders.services.scheduler_service import ReminderScheduler, window_dates
from reminders.services.store import SqlReminderStore

AFTER = ReminderType.AFTER_DEADLINE
REPORT_DATE = date(2024, 3, 1)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


async def run(session, settings, now):
    return await ReminderScheduler(SqlReminderStore(session), settings).run(now)


def test_window_covers_seven_days_back_and_three_ahead():
    dates = window_dates(date(2024, 3, 10), 7, 3)
    assert dates[0] == date(2024, 3, 3)
    assert dates[-1] == date(2024, 3, 13)
    assert len(dates) == 11


async def test_support_scenario(session, settings, support, db):
    await db.rule(AFTER, ["assignee", "manager-of-unit"], days_after=1)
    report = await db.report(support["department"], REPORT_DATE, ReportStatus.DRAFT)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))

    assert result.reminders_sent == 1
    assert result.escalations_sent == 0
    assert result.notifications_created == 2
    assert result.errors == []

    notifications = await db.notifications()
    assert {n.user_id for n in notifications} == {support["assignee"].id, support["manager"].id}
    assert {n.type for n in notifications} == {NotificationType.LATE.value}
    assert all(n.entity_id == report.id and n.escalation_level == 1 for n in notifications)
    assert "Support" in notifications[0].title
    assert notifications[0].data["report_date"] == "2024-03-01"
    assert notifications[0].data["reminder_type"] == "after_deadline"

    submission = await db.submission(report)
    assert submission.reminder_sent_count == 1

    again = await run(session, settings, utc(2024, 3, 2, 15, 0))
    assert again.notifications_created == 0
    assert await db.notification_count() == 2
    assert (await db.submission(report)).reminder_sent_count == 1


async def test_next_day_is_evaluated_afresh(session, settings, support, db):
    await db.rule(ReminderType.ON_DEADLINE, ["assignee"])
    await db.report(support["department"], date(2024, 3, 2))
    await db.report(support["department"], date(2024, 3, 3))
    await db.commit()

    first = await run(session, settings, utc(2024, 3, 2, 8, 0))
    second = await run(session, settings, utc(2024, 3, 3, 8, 0))

    assert first.reminders_sent == 1
    assert second.reminders_sent == 1
    assert await db.notification_count() == 2


async def test_on_time_submission_never_fires_after_deadline(session, settings, support, db):
    await db.rule(AFTER, ["assignee"], days_after=1)
    await db.report(support["department"], REPORT_DATE, ReportStatus.SUBMITTED,
                    submitted_at=utc(2024, 3, 1, 17, 0))
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))
    assert result.notifications_created == 0
    assert await db.notification_count() == 0


async def test_late_submission_still_fires_after_deadline(session, settings, support, db):
    await db.rule(AFTER, ["assignee"], days_after=1)
    await db.report(support["department"], REPORT_DATE, ReportStatus.SUBMITTED,
                    submitted_at=utc(2024, 3, 1, 20, 0))
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))
    assert result.reminders_sent == 1


async def test_levels_are_tracked_independently(session, settings, support, db):
    admin = await db.user("Dana Admin", role="superadmin")
    await db.rule(AFTER, ["assignee"], level=1, days_after=3)
    await db.rule(AFTER, ["manager-of-unit", "role:superadmin"], level=2, days_after=3)
    await db.report(support["department"], REPORT_DATE, ReportStatus.DRAFT)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 4, 19, 0))

    assert result.reminders_sent == 2
    late = await db.notifications(escalation_level=1)
    escalated = await db.notifications(escalation_level=2)
    assert [n.user_id for n in late] == [support["assignee"].id]
    assert {n.user_id for n in escalated} == {support["manager"].id, admin.id}
    assert {n.type for n in escalated} == {NotificationType.ESCALATION.value}

    again = await run(session, settings, utc(2024, 3, 4, 20, 0))
    assert again.notifications_created == 0


async def test_cross_escalation_is_added_on_top_of_level_one(session, settings, support, db):
    admin = await db.user("Dana Admin", role="superadmin")
    await db.rule(AFTER, ["assignee"], level=1, days_after=3)
    await db.rule(AFTER, ["role:superadmin"], level=2, days_after=5)
    await db.report(support["department"], REPORT_DATE, ReportStatus.DRAFT)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 4, 19, 0))

    assert result.reminders_sent == 1
    assert result.escalations_sent == 1
    escalated = await db.notifications(escalation_level=2)
    assert {n.user_id for n in escalated} == {support["manager"].id, admin.id}
    assert all(n.data["cross_escalation"] is True for n in escalated)
    assert all(n.data["days_late"] == 3 for n in escalated)
    assert "3 days overdue" in escalated[0].message

    again = await run(session, settings, utc(2024, 3, 4, 21, 0))
    assert again.notifications_created == 0


async def test_recipient_in_two_descriptors_gets_one_notification(session, settings, db):
    boss = await db.user("Boss", role="superadmin")
    department = await db.department("Ops")
    await db.assignment(department, assignee=boss, deadline=time(12, 0))
    await db.rule(ReminderType.ON_DEADLINE, ["assignee", "role:superadmin"])
    await db.report(department, REPORT_DATE)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 1, 8, 0))
    assert result.notifications_created == 1
    assert [n.user_id for n in await db.notifications()] == [boss.id]


async def test_absent_assignee_yields_nothing(session, settings, db):
    department = await db.department("Ops")
    await db.assignment(department, assignee=None)
    await db.rule(ReminderType.ON_DEADLINE, ["assignee"])
    await db.report(department, REPORT_DATE)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 1, 8, 0))
    assert result.notifications_created == 0
    assert result.errors == []


async def test_absent_report_yields_nothing(session, settings, support, db):
    await db.rule(AFTER, ["assignee"], days_after=1)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))
    assert result.notifications_created == 0
    assert result.errors == []


async def test_broken_assignment_does_not_block_others(session, settings, support, db):
    broken = await db.department("Broken")
    broken_id = broken.id
    await db.assignment(broken, tz="Mars/Olympus_Mons")
    await db.rule(AFTER, ["assignee"], days_after=1)
    await db.report(support["department"], REPORT_DATE)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))

    assert result.reminders_sent == 1
    assert len(result.errors) == len(window_dates(date(2024, 3, 2), 7, 3))
    assert {e.unit_id for e in result.errors} == {broken_id}
    with pytest.raises(PartialRunError):
        result.raise_for_errors()


async def test_invalid_descriptor_is_recorded_per_rule(session, settings, support, db):
    await db.rule(ReminderType.ON_DEADLINE, ["assignee", "team:ops"])
    await db.rule(AFTER, ["assignee"], days_after=1)
    await db.report(support["department"], date(2024, 3, 2))
    await db.report(support["department"], REPORT_DATE)
    await db.commit()

    result = await run(session, settings, utc(2024, 3, 2, 9, 0))

    assert result.reminders_sent == 1
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.reminder_type == "on_deadline"
    assert error.escalation_level == 1
    assert error.report_date == date(2024, 3, 2)
    assert "team:ops" in error.error


async def test_overlapping_run_is_skipped(session, settings, support):
    async with scheduler_service._run_lock:
        result = await run(session, settings, utc(2024, 3, 2, 9, 0))
    assert result.skipped
    assert result.to_dict()["success"] is False


async def test_listing_failure_aborts_the_run(settings):
    class FailingStore:
        async def list_active_assignments(self):
            raise DataAccessError("database is down")

    with pytest.raises(DataAccessError):
        await ReminderScheduler(FailingStore(), settings).run(utc(2024, 3, 2, 9, 0))
    assert not scheduler_service.is_running()
