# backend/maintdb/apps/scheduling/models.py

"""
Planned maintenance (calendar) ORM models.

A MaintenanceSchedule is one dated occurrence of planned work on a machine.
Recurring schedules carry (recurrence_type, recurrence_interval) and a
precomputed next_occurrence; completing one occurrence creates the next row.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ...database import Base, enum_values
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MaintenanceCategoryEnum(str, Enum):
    PREVENTIVE = "preventive"
    PERIODIC = "periodic"
    CALIBRATION = "calibration"
    CLEANING = "cleaning"
    LUBRICATION = "lubrication"
    INSPECTION = "inspection"
    OTHER = "other"


class SchedulePriorityEnum(str, Enum):
    """Planning priority, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ScheduleStatusEnum(str, Enum):
    PLANNED = "planned"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class RecurrenceTypeEnum(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    YEARLY = "yearly"


TERMINAL_SCHEDULE_STATUSES = frozenset(
    {ScheduleStatusEnum.COMPLETED, ScheduleStatusEnum.CANCELLED}
)


class MaintenanceSchedule(Base):
    __tablename__ = "maintenance_schedules"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_schedule_end_after_start"),
        CheckConstraint(
            "recurrence_interval IS NULL OR recurrence_interval >= 1",
            name="ck_schedule_interval_positive",
        ),
        Index("ix_schedules_dept_start", "department_id", "start_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    machine_id = Column(
        String(36),
        ForeignKey("machines.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    department_id = Column(
        String(36),
        ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_by_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_to_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    maintenance_type = Column(
        SQLEnum(MaintenanceCategoryEnum, name="maintenance_category", values_callable=enum_values),
        nullable=False,
        default=MaintenanceCategoryEnum.PREVENTIVE,
    )
    priority = Column(
        SQLEnum(SchedulePriorityEnum, name="schedule_priority", values_callable=enum_values),
        nullable=False,
        default=SchedulePriorityEnum.MEDIUM,
    )

    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False)
    estimated_duration = Column(Integer, nullable=True)  # minutes

    status = Column(
        SQLEnum(ScheduleStatusEnum, name="schedule_status", values_callable=enum_values),
        nullable=False,
        default=ScheduleStatusEnum.PLANNED,
        index=True,
    )

    # Recurrence: interval only means something when a type is set
    recurrence_type = Column(
        SQLEnum(RecurrenceTypeEnum, name="recurrence_type", values_callable=enum_values),
        nullable=True,
    )
    recurrence_interval = Column(Integer, nullable=True)
    next_occurrence = Column(Date, nullable=True)

    # Set only on completion
    completion_notes = Column(Text, nullable=True)
    actual_duration = Column(Integer, nullable=True)  # minutes
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    machine = relationship("Machine")
    department = relationship("Department")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_type is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SCHEDULE_STATUSES
