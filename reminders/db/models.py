import enum
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Date, Time, Boolean,
    ForeignKey, Enum, JSON, UniqueConstraint, Index, func
)
from sqlalchemy.orm import relationship, DeclarativeBase


class Base(DeclarativeBase):
    pass


# ─── ENUMS ───────────────────────────────────────────────

class ReminderType(str, enum.Enum):
    BEFORE_DEADLINE = "before_deadline"
    ON_DEADLINE = "on_deadline"
    AFTER_DEADLINE = "after_deadline"


class ReportStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    DRAFT = "draft"
    SUBMITTED = "submitted"


class NotificationType(str, enum.Enum):
    DUE_SOON = "department_report_due_soon"
    DEADLINE_TODAY = "department_report_deadline_today"
    LATE = "department_report_late"
    ESCALATION = "department_report_reminder_escalation"


# ─── MODELS ──────────────────────────────────────────────

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255))
    role = Column(String(50), nullable=False, default="employee", index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=func.now())

    notifications = relationship("Notification", back_populates="user")


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    manager_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=func.now())

    manager = relationship("User", foreign_keys=[manager_id])
    assignments = relationship("ReportAssignment", back_populates="department")


class ReportAssignment(Base):
    __tablename__ = "department_report_assignments"
    __table_args__ = (
        UniqueConstraint("department_id", "category_id", name="uq_assignment_department_category"),
    )

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, nullable=True)  # NULL = whole department
    assigned_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submission_deadline_time = Column(Time, nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    department = relationship("Department", back_populates="assignments")
    assigned_user = relationship("User", foreign_keys=[assigned_user_id])


class ReminderConfig(Base):
    __tablename__ = "department_report_reminder_configs"

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=True)  # NULL = global
    reminder_type = Column(Enum(ReminderType), nullable=False)
    days_before = Column(Integer, nullable=True)
    days_after = Column(Integer, nullable=True)
    escalation_level = Column(Integer, nullable=False, default=1)
    notify_users = Column(JSON, nullable=False, default=list)  # ["assignee", "manager-of-unit", "role:superadmin", ...]
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_reminder_configs_department_active", "department_id", "is_active"),
    )


class DepartmentReport(Base):
    __tablename__ = "department_reports"
    __table_args__ = (
        UniqueConstraint("department_id", "category_id", "report_date", name="uq_department_report_date"),
    )

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, nullable=True)
    report_date = Column(Date, nullable=False)
    status = Column(Enum(ReportStatus), default=ReportStatus.NOT_STARTED, nullable=False)
    submitted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    department = relationship("Department")
    submission = relationship("ReportSubmission", back_populates="report", uselist=False)


class ReportSubmission(Base):
    __tablename__ = "department_report_submissions"

    id = Column(Integer, primary_key=True)
    department_report_id = Column(
        Integer, ForeignKey("department_reports.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    reminder_sent_count = Column(Integer, default=0, nullable=False)
    last_reminder_sent_at = Column(DateTime(timezone=True))

    report = relationship("DepartmentReport", back_populates="submission")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(64), nullable=False)
    title = Column(String(500), nullable=False)
    message = Column(Text)
    entity_type = Column(String(50))  # department_report
    entity_id = Column(Integer)
    escalation_level = Column(Integer)
    data = Column(JSON)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=func.now())

    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index("ix_notifications_entity_type_created", "entity_type", "entity_id", "type", "created_at"),
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )
