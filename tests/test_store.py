from datetime import date, datetime, time, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reminders.db.models import ReminderType, ReportStatus
from reminders.errors import DataAccessError
from reminders.services.store import SqlReminderStore
from reminders.services.types import NotificationRecord


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


async def test_assignments_carry_unit_and_assignee_names(session, support, db):
    await db.assignment(support["department"], category_id=5, is_active=False)
    await db.commit()

    assignments = await SqlReminderStore(session).list_active_assignments()
    assert len(assignments) == 1
    a = assignments[0]
    assert a.unit_name == "Support"
    assert a.assigned_user_name == "Alex Assignee"
    assert a.deadline_time == time(18, 0)


async def test_rules_include_globals_and_own_unit(session, support, db):
    other = await db.department("Sales")
    await db.rule(ReminderType.ON_DEADLINE, ["assignee"])
    await db.rule(ReminderType.ON_DEADLINE, ["manager"], department=support["department"])
    await db.rule(ReminderType.ON_DEADLINE, ["manager"], department=other)
    await db.rule(ReminderType.BEFORE_DEADLINE, ["assignee"], days_before=1, is_active=False)
    await db.commit()

    store = SqlReminderStore(session)
    unit_rules = await store.list_reminder_rules(support["department"].id)
    assert sorted(r.unit_id or 0 for r in unit_rules) == [0, support["department"].id]
    assert [r.unit_id for r in await store.list_reminder_rules()] == [None]


async def test_get_obligation_matches_whole_unit_category(session, support, db):
    dept = support["department"]
    whole = await db.report(dept, date(2024, 3, 1))
    await db.report(dept, date(2024, 3, 1), category_id=3)
    await db.commit()

    store = SqlReminderStore(session)
    found = await store.get_obligation(dept.id, None, date(2024, 3, 1))
    assert found.id == whole.id
    assert found.status == ReportStatus.DRAFT
    assert found.reminder_sent_count == 0
    assert await store.get_obligation(dept.id, None, date(2024, 3, 2)) is None


async def test_users_by_role_skip_inactive(session, db):
    admin = await db.user("Admin", role="superadmin")
    await db.user("Former", role="superadmin", is_active=False)
    await db.commit()

    assert await SqlReminderStore(session).resolve_users_by_role("superadmin") == [admin.id]


async def test_notifications_today_and_bookkeeping(session, support, db):
    report = await db.report(support["department"], date(2024, 3, 1))
    await db.commit()
    store = SqlReminderStore(session)
    sent_at = utc(2024, 3, 2, 9, 0)

    await store.write_notifications([NotificationRecord(
        user_id=support["assignee"].id, type="department_report_late", title="t", message="m",
        data={}, created_at=sent_at, entity_id=report.id, escalation_level=1,
    )])
    await store.update_bookkeeping(report.id, 1, sent_at)
    await store.update_bookkeeping(report.id, 1, utc(2024, 3, 2, 10, 0))
    await store.commit()

    assert await store.find_notifications_today(report.id, "department_report_late", 1, utc(2024, 3, 2))
    assert not await store.find_notifications_today(report.id, "department_report_late", 2, utc(2024, 3, 2))
    assert not await store.find_notifications_today(report.id, "department_report_late", 1, utc(2024, 3, 3))

    submission = await db.submission(report)
    assert submission.reminder_sent_count == 2


async def test_sqlalchemy_errors_become_data_access_errors():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    try:
        async with async_sessionmaker(engine, class_=AsyncSession)() as session:
            with pytest.raises(DataAccessError):
                await SqlReminderStore(session).list_active_assignments()
    finally:
        await engine.dispose()
