"""
seed_demo.py: demo data for the reminder scheduler
Run: python seed_demo.py
"""
import asyncio
from datetime import date, datetime, time, timedelta, timezone
from sqlalchemy import select, func
from reminders.db.session import async_session, init_db
from reminders.db.models import (
    User, Department, ReportAssignment, ReminderConfig, ReminderType,
    DepartmentReport, ReportStatus,
)

TODAY = date.today()


async def seed():
    await init_db()
    async with async_session() as db:
        dept_count = (await db.execute(select(func.count(Department.id)))).scalar()
        if dept_count > 0:
            print(f"Already seeded ({dept_count} departments). Skipping.")
            return

        print("Seeding demo data...")

        # ── Users ──
        admin = User(full_name="Dana Admin", email="admin@example.com", role="superadmin")
        support_lead = User(full_name="Sam Lead", email="lead@example.com", role="manager")
        support_agent = User(full_name="Alex Agent", email="agent@example.com", role="employee")
        sales_lead = User(full_name="Robin Sales", email="sales@example.com", role="manager")
        db.add_all([admin, support_lead, support_agent, sales_lead])
        await db.flush()

        # ── Departments ──
        support = Department(name="Support", manager_id=support_lead.id)
        sales = Department(name="Sales", manager_id=sales_lead.id)
        db.add_all([support, sales])
        await db.flush()

        # ── Assignments ──
        db.add_all([
            ReportAssignment(
                department_id=support.id, assigned_user_id=support_agent.id,
                submission_deadline_time=time(18, 0), timezone="UTC",
            ),
            ReportAssignment(
                department_id=sales.id, assigned_user_id=None,
                submission_deadline_time=time(17, 0), timezone="Asia/Kolkata",
            ),
        ])

        # ── Global rules ──
        db.add_all([
            ReminderConfig(
                reminder_type=ReminderType.BEFORE_DEADLINE, days_before=1, escalation_level=1,
                notify_users=["assignee"],
            ),
            ReminderConfig(
                reminder_type=ReminderType.ON_DEADLINE, escalation_level=1,
                notify_users=["assignee"],
            ),
            ReminderConfig(
                reminder_type=ReminderType.AFTER_DEADLINE, days_after=1, escalation_level=1,
                notify_users=["assignee", "manager-of-unit"],
            ),
            ReminderConfig(
                reminder_type=ReminderType.AFTER_DEADLINE, days_after=3, escalation_level=2,
                notify_users=["manager-of-unit", "role:superadmin"],
            ),
        ])

        # ── Unit override: Sales managers want to hear about it two days ahead ──
        db.add(ReminderConfig(
            department_id=sales.id, reminder_type=ReminderType.BEFORE_DEADLINE,
            days_before=2, escalation_level=1, notify_users=["manager-of-unit"],
        ))

        # ── Reports: a late draft, a submitted one, and upcoming ones ──
        for offset in range(-4, 3):
            report_date = TODAY + timedelta(days=offset)
            status = ReportStatus.DRAFT
            submitted_at = None
            if offset == -2:
                status = ReportStatus.SUBMITTED
                submitted_at = datetime.combine(report_date, time(16, 30), tzinfo=timezone.utc)
            db.add(DepartmentReport(
                department_id=support.id, report_date=report_date,
                status=status, submitted_at=submitted_at,
            ))
            db.add(DepartmentReport(
                department_id=sales.id, report_date=report_date,
                status=ReportStatus.NOT_STARTED,
            ))

        await db.commit()
        print("Done.")


if __name__ == "__main__":
    asyncio.run(seed())
