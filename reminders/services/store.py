"""
Data access for the reminder scheduler.

``ReminderStore`` is everything the scheduler needs from the outside
world; ``SqlReminderStore`` implements it over an SQLAlchemy
``AsyncSession``. Rows are handed out as the plain value types from
``reminders.services.types``.
"""
import functools
from abc import ABC, abstractmethod
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reminders.db.models import (
    Department, DepartmentReport, Notification, ReminderConfig,
    ReportAssignment, ReportSubmission, User,
)
from reminders.errors import DataAccessError
from reminders.services.types import (
    Assignment, NotificationRecord, ReminderRule, ReportState,
)


class ReminderStore(ABC):

    @abstractmethod
    async def list_active_assignments(self) -> list[Assignment]: ...

    @abstractmethod
    async def get_obligation(self, unit_id: int, category_id: int | None,
                             report_date: date) -> ReportState | None: ...

    @abstractmethod
    async def get_report(self, report_id: int) -> ReportState | None: ...

    @abstractmethod
    async def get_assignment(self, unit_id: int, category_id: int | None) -> Assignment | None:
        """The assignment for (unit, category), active or not."""

    @abstractmethod
    async def list_reminder_rules(self, unit_id: int | None = None) -> list[ReminderRule]:
        """Global rules plus, when ``unit_id`` is given, that unit's rules."""

    @abstractmethod
    async def resolve_users_by_role(self, role: str) -> list[int]: ...

    @abstractmethod
    async def get_unit_manager(self, unit_id: int) -> int | None: ...

    @abstractmethod
    async def get_unit_name(self, unit_id: int) -> str | None: ...

    @abstractmethod
    async def find_notifications_today(self, report_id: int, type_tag: str,
                                       escalation_level: int, day_start: datetime) -> bool: ...

    @abstractmethod
    async def write_notifications(self, records: list[NotificationRecord]) -> int: ...

    @abstractmethod
    async def update_bookkeeping(self, report_id: int, increment: int, sent_at: datetime): ...

    async def commit(self):
        pass

    async def rollback(self):
        pass


def data_access(func):
    """Re-raise SQLAlchemy failures as DataAccessError."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            raise DataAccessError(f"{func.__name__} failed: {e}") from e

    return wrapper


def _to_assignment(row: ReportAssignment) -> Assignment:
    return Assignment(
        id=row.id,
        unit_id=row.department_id,
        category_id=row.category_id,
        assigned_user_id=row.assigned_user_id,
        deadline_time=row.submission_deadline_time,
        timezone=row.timezone,
        is_active=row.is_active,
        unit_name=row.department.name if row.department else None,
        assigned_user_name=row.assigned_user.full_name if row.assigned_user else None,
    )


def _to_rule(row: ReminderConfig) -> ReminderRule:
    return ReminderRule(
        id=row.id,
        unit_id=row.department_id,
        kind=row.reminder_type,
        escalation_level=row.escalation_level or 1,
        notify_users=tuple(row.notify_users or ()),
        days_before=row.days_before,
        days_after=row.days_after,
        is_active=row.is_active,
    )


def _to_report(row: DepartmentReport) -> ReportState:
    submission = row.submission
    return ReportState(
        id=row.id,
        unit_id=row.department_id,
        category_id=row.category_id,
        report_date=row.report_date,
        status=row.status,
        submitted_at=row.submitted_at,
        reminder_sent_count=submission.reminder_sent_count if submission else 0,
        last_reminder_sent_at=submission.last_reminder_sent_at if submission else None,
    )


class SqlReminderStore(ReminderStore):

    def __init__(self, session: AsyncSession):
        self.session = session

    @data_access
    async def list_active_assignments(self) -> list[Assignment]:
        result = await self.session.execute(
            select(ReportAssignment)
            .options(selectinload(ReportAssignment.department), selectinload(ReportAssignment.assigned_user))
            .where(ReportAssignment.is_active == True)
            .order_by(ReportAssignment.id)
        )
        return [_to_assignment(row) for row in result.scalars().all()]

    @data_access
    async def get_obligation(self, unit_id: int, category_id: int | None,
                             report_date: date) -> ReportState | None:
        category_filter = (
            DepartmentReport.category_id.is_(None)
            if category_id is None
            else DepartmentReport.category_id == category_id
        )
        result = await self.session.execute(
            select(DepartmentReport)
            .options(selectinload(DepartmentReport.submission))
            .where(
                DepartmentReport.department_id == unit_id,
                category_filter,
                DepartmentReport.report_date == report_date,
            )
            .order_by(DepartmentReport.id)
        )
        row = result.scalars().first()
        return _to_report(row) if row else None

    @data_access
    async def get_report(self, report_id: int) -> ReportState | None:
        result = await self.session.execute(
            select(DepartmentReport)
            .options(selectinload(DepartmentReport.submission))
            .where(DepartmentReport.id == report_id)
        )
        row = result.scalar_one_or_none()
        return _to_report(row) if row else None

    @data_access
    async def get_assignment(self, unit_id: int, category_id: int | None) -> Assignment | None:
        category_filter = (
            ReportAssignment.category_id.is_(None)
            if category_id is None
            else ReportAssignment.category_id == category_id
        )
        result = await self.session.execute(
            select(ReportAssignment)
            .options(selectinload(ReportAssignment.department), selectinload(ReportAssignment.assigned_user))
            .where(ReportAssignment.department_id == unit_id, category_filter)
        )
        row = result.scalars().first()
        return _to_assignment(row) if row else None

    @data_access
    async def list_reminder_rules(self, unit_id: int | None = None) -> list[ReminderRule]:
        scope = ReminderConfig.department_id.is_(None)
        if unit_id is not None:
            scope = scope | (ReminderConfig.department_id == unit_id)
        result = await self.session.execute(
            select(ReminderConfig)
            .where(scope, ReminderConfig.is_active == True)
            .order_by(ReminderConfig.escalation_level, ReminderConfig.id)
        )
        return [_to_rule(row) for row in result.scalars().all()]

    @data_access
    async def resolve_users_by_role(self, role: str) -> list[int]:
        result = await self.session.execute(
            select(User.id).where(User.role == role, User.is_active == True).order_by(User.id)
        )
        return list(result.scalars().all())

    @data_access
    async def get_unit_manager(self, unit_id: int) -> int | None:
        result = await self.session.execute(
            select(Department.manager_id).where(Department.id == unit_id)
        )
        return result.scalar_one_or_none()

    @data_access
    async def get_unit_name(self, unit_id: int) -> str | None:
        result = await self.session.execute(
            select(Department.name).where(Department.id == unit_id)
        )
        return result.scalar_one_or_none()

    @data_access
    async def find_notifications_today(self, report_id: int, type_tag: str,
                                       escalation_level: int, day_start: datetime) -> bool:
        result = await self.session.execute(
            select(Notification.id)
            .where(
                Notification.entity_type == "department_report",
                Notification.entity_id == report_id,
                Notification.type == type_tag,
                Notification.escalation_level == escalation_level,
                Notification.created_at >= day_start,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @data_access
    async def write_notifications(self, records: list[NotificationRecord]) -> int:
        self.session.add_all([
            Notification(
                user_id=r.user_id,
                type=r.type,
                title=r.title,
                message=r.message,
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                escalation_level=r.escalation_level,
                data=r.data,
                is_read=r.is_read,
                created_at=r.created_at,
            )
            for r in records
        ])
        await self.session.flush()
        return len(records)

    @data_access
    async def update_bookkeeping(self, report_id: int, increment: int, sent_at: datetime):
        result = await self.session.execute(
            update(ReportSubmission)
            .where(ReportSubmission.department_report_id == report_id)
            .values(
                reminder_sent_count=ReportSubmission.reminder_sent_count + increment,
                last_reminder_sent_at=sent_at,
            )
        )
        if result.rowcount == 0:
            self.session.add(ReportSubmission(
                department_report_id=report_id,
                reminder_sent_count=increment,
                last_reminder_sent_at=sent_at,
            ))
        await self.session.flush()

    @data_access
    async def commit(self):
        await self.session.commit()

    @data_access
    async def rollback(self):
        await self.session.rollback()
