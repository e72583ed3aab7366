from datetime import date, time

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reminders.config import Settings
from reminders.db.models import (
    Base, Department, DepartmentReport, Notification, ReminderConfig,
    ReminderType, ReportAssignment, ReportStatus, ReportSubmission, User,
)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(_env_file=None, reference_timezone="UTC", escalation_role="superadmin")


class Seeder:
    """Inserts rows with sensible defaults and flushes so ids are available."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def user(self, full_name="User", role="employee", is_active=True):
        return await self._add(User(full_name=full_name, role=role, is_active=is_active))

    async def department(self, name="Support", manager=None):
        return await self._add(Department(name=name, manager_id=manager.id if manager else None))

    async def assignment(self, department, assignee=None, deadline=time(18, 0), tz="UTC",
                         category_id=None, is_active=True):
        return await self._add(ReportAssignment(
            department_id=department.id,
            category_id=category_id,
            assigned_user_id=assignee.id if assignee else None,
            submission_deadline_time=deadline,
            timezone=tz,
            is_active=is_active,
        ))

    async def rule(self, kind: ReminderType, notify_users, level=1, department=None,
                   days_before=None, days_after=None, is_active=True):
        return await self._add(ReminderConfig(
            department_id=department.id if department else None,
            reminder_type=kind,
            days_before=days_before,
            days_after=days_after,
            escalation_level=level,
            notify_users=list(notify_users),
            is_active=is_active,
        ))

    async def report(self, department, report_date: date, status=ReportStatus.DRAFT,
                     submitted_at=None, category_id=None):
        return await self._add(DepartmentReport(
            department_id=department.id,
            category_id=category_id,
            report_date=report_date,
            status=status,
            submitted_at=submitted_at,
        ))

    async def notifications(self, **filters) -> list[Notification]:
        query = select(Notification).order_by(Notification.id)
        for column, value in filters.items():
            query = query.where(getattr(Notification, column) == value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def notification_count(self) -> int:
        return (await self.session.execute(select(func.count(Notification.id)))).scalar()

    async def submission(self, report) -> ReportSubmission | None:
        result = await self.session.execute(
            select(ReportSubmission)
            .where(ReportSubmission.department_report_id == report.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def commit(self):
        await self.session.commit()


@pytest.fixture
def db(session):
    return Seeder(session)


@pytest.fixture
async def support(db):
    """Unit "Support": assignee + manager, deadline 18:00 UTC."""
    manager = await db.user("Morgan Manager", role="manager")
    assignee = await db.user("Alex Assignee")
    department = await db.department("Support", manager=manager)
    assignment = await db.assignment(department, assignee=assignee, deadline=time(18, 0), tz="UTC")
    await db.commit()
    return {
        "manager": manager,
        "assignee": assignee,
        "department": department,
        "assignment": assignment,
    }
