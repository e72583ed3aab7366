"""Reminders API: trigger runs, manual reminders and escalations"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.db.models import ReminderType
from reminders.db.session import async_session
from reminders.errors import (
    ConfigurationError, DataAccessError, InvalidDescriptorError, NotFoundError,
)
from reminders.services.reminder_service import (
    escalate_late_report, list_upcoming_deadlines, send_reminder_for_report,
)
from reminders.services.scheduler_service import ReminderScheduler
from reminders.services.store import SqlReminderStore

router = APIRouter(prefix="/api", tags=["reminders"])


async def get_db():
    async with async_session() as session:
        yield session


# ─── SCHEMAS ─────────────────────────────────────────────

class RunErrorOut(BaseModel):
    unit_id: int
    category_id: int | None
    report_date: date
    reminder_type: str | None
    escalation_level: int | None
    error: str


class RunOut(BaseModel):
    success: bool
    reminders_sent: int
    escalations_sent: int
    notifications_created: int
    errors: list[RunErrorOut]
    processed_at: datetime


class UpcomingDeadlineOut(BaseModel):
    department_id: int
    department_name: str
    category_id: int | None
    report_date: date
    deadline: datetime
    assigned_user_id: int | None
    assigned_user_name: str


class RemindIn(BaseModel):
    reminder_type: ReminderType
    escalation_level: int = 1


class EscalateIn(BaseModel):
    department_id: int
    report_date: date
    category_id: int | None = None


class SentOut(BaseModel):
    success: bool = True
    notifications_created: int


# ─── ROUTES ──────────────────────────────────────────────

@router.post("/reminders/run", response_model=RunOut)
async def run_reminders(db: AsyncSession = Depends(get_db)):
    try:
        result = await ReminderScheduler(SqlReminderStore(db)).run()
    except DataAccessError as e:
        raise HTTPException(503, str(e))
    if result.skipped:
        raise HTTPException(409, "Reminder run already in progress")
    return result.to_dict()


@router.get("/reminders/upcoming", response_model=list[UpcomingDeadlineOut])
async def upcoming_deadlines(
    days_ahead: int | None = Query(None, ge=0, le=60),
    db: AsyncSession = Depends(get_db),
):
    try:
        upcoming = await list_upcoming_deadlines(SqlReminderStore(db), days_ahead)
    except DataAccessError as e:
        raise HTTPException(503, str(e))
    return [
        UpcomingDeadlineOut(
            department_id=d.unit_id,
            department_name=d.unit_name,
            category_id=d.category_id,
            report_date=d.report_date,
            deadline=d.deadline,
            assigned_user_id=d.assigned_user_id,
            assigned_user_name=d.assigned_user_name,
        )
        for d in upcoming
    ]


@router.post("/reports/{report_id}/remind", response_model=SentOut)
async def remind_report(report_id: int, body: RemindIn, db: AsyncSession = Depends(get_db)):
    try:
        written = await send_reminder_for_report(
            SqlReminderStore(db), report_id, body.reminder_type, body.escalation_level,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConfigurationError as e:
        raise HTTPException(422, str(e))
    except InvalidDescriptorError as e:
        raise HTTPException(422, str(e))
    except DataAccessError as e:
        raise HTTPException(503, str(e))
    return SentOut(notifications_created=written)


@router.post("/reports/escalate", response_model=SentOut)
async def escalate_report(body: EscalateIn, db: AsyncSession = Depends(get_db)):
    try:
        written = await escalate_late_report(
            SqlReminderStore(db), body.department_id, body.report_date, body.category_id,
        )
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConfigurationError as e:
        raise HTTPException(422, str(e))
    except InvalidDescriptorError as e:
        raise HTTPException(422, str(e))
    except DataAccessError as e:
        raise HTTPException(503, str(e))
    return SentOut(notifications_created=written)
