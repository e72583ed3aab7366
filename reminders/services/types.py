"""
Plain value types passed between the scheduler components.

The store converts ORM rows into these so the policy code stays pure and
can be exercised without a database.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from reminders.db.models import ReminderType, ReportStatus
from reminders.errors import PartialRunError


@dataclass(frozen=True)
class Assignment:
    id: int
    unit_id: int
    category_id: int | None
    assigned_user_id: int | None
    deadline_time: time | str | None
    timezone: str | None
    is_active: bool = True
    unit_name: str | None = None
    assigned_user_name: str | None = None


@dataclass(frozen=True)
class ReminderRule:
    id: int
    unit_id: int | None  # None = global default
    kind: ReminderType
    escalation_level: int
    notify_users: tuple[str, ...] = ()
    days_before: int | None = None
    days_after: int | None = None
    is_active: bool = True

    @property
    def is_global(self) -> bool:
        return self.unit_id is None


@dataclass(frozen=True)
class ReportState:
    """A department report row as stored, without anything derived."""
    id: int
    unit_id: int
    category_id: int | None
    report_date: date
    status: ReportStatus
    submitted_at: datetime | None = None
    reminder_sent_count: int = 0
    last_reminder_sent_at: datetime | None = None


@dataclass(frozen=True)
class Obligation:
    report: ReportState
    deadline: datetime
    is_late: bool
    days_late: int

    @property
    def id(self) -> int:
        return self.report.id

    @property
    def unit_id(self) -> int:
        return self.report.unit_id

    @property
    def report_date(self) -> date:
        return self.report.report_date

    @property
    def status(self) -> ReportStatus:
        return self.report.status

    @property
    def is_submitted(self) -> bool:
        return self.report.status == ReportStatus.SUBMITTED


@dataclass(frozen=True)
class DispatchDecision:
    rule: ReminderRule
    type_tag: str
    descriptors: tuple[str, ...]
    cross_escalation: bool = False

    @property
    def kind(self) -> ReminderType:
        return self.rule.kind

    @property
    def escalation_level(self) -> int:
        return self.rule.escalation_level


@dataclass(frozen=True)
class NotificationRecord:
    user_id: int
    type: str
    title: str
    message: str
    data: dict
    created_at: datetime
    entity_id: int | None = None
    escalation_level: int | None = None
    entity_type: str = "department_report"
    is_read: bool = False


@dataclass(frozen=True)
class UpcomingDeadline:
    unit_id: int
    unit_name: str
    category_id: int | None
    report_date: date
    deadline: datetime
    assigned_user_id: int | None
    assigned_user_name: str


@dataclass(frozen=True)
class RunItemError:
    unit_id: int
    category_id: int | None
    report_date: date
    reminder_type: str | None
    escalation_level: int | None
    error: str

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "category_id": self.category_id,
            "report_date": self.report_date.isoformat(),
            "reminder_type": self.reminder_type,
            "escalation_level": self.escalation_level,
            "error": self.error,
        }


@dataclass
class RunResult:
    reminders_sent: int = 0
    escalations_sent: int = 0
    notifications_created: int = 0
    errors: list[RunItemError] = field(default_factory=list)
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    skipped: bool = False

    def raise_for_errors(self):
        if self.errors:
            raise PartialRunError(self.errors)

    def to_dict(self) -> dict:
        return {
            "success": not self.skipped,
            "reminders_sent": self.reminders_sent,
            "escalations_sent": self.escalations_sent,
            "notifications_created": self.notifications_created,
            "errors": [e.to_dict() for e in self.errors],
            "processed_at": self.processed_at.isoformat(),
        }
