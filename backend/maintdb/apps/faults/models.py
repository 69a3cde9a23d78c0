# backend/maintdb/apps/faults/models.py

"""
Fault module ORM models.

- FaultReport: a reported machine malfunction and its lifecycle status.
- Assignment: binding of a fault to one maintenance worker. Rows stay as
  history once `completed_at` is set; at most one row per fault may be open.
- MaintenanceAction: append-only log of work performed against a fault.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ...database import Base, enum_values
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations – values are what the API and DB speak
# ---------------------------------------------------------------------------


class FaultCategoryEnum(str, Enum):
    """What kind of malfunction was reported."""

    MECHANICAL = "Mechanical"
    ELECTRIC = "Electric"
    IT = "IT"
    PNEUMATIC = "Pneumatic"
    HYDRAULIC = "Hydraulic"
    SOFTWARE = "Software"
    OTHER = "Other"


class FaultPriorityEnum(str, Enum):
    """Reporting priority, ordered LOW < MEDIUM < HIGH < URGENT."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _FAULT_PRIORITY_RANK[self]


_FAULT_PRIORITY_RANK = {
    FaultPriorityEnum.LOW: 0,
    FaultPriorityEnum.MEDIUM: 1,
    FaultPriorityEnum.HIGH: 2,
    FaultPriorityEnum.URGENT: 3,
}


class FaultStatusEnum(str, Enum):
    """Lifecycle state of a fault report."""

    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# FaultReport
# ---------------------------------------------------------------------------


class FaultReport(Base):
    """
    Fault reported against a machine.

    department_id is copied from the machine when the report is created and
    never changes afterwards, even if the machine is moved.
    """

    __tablename__ = "fault_reports"
    __table_args__ = (
        Index("ix_fault_reports_dept_status", "department_id", "status"),
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
    reporter_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    category = Column(
        SQLEnum(FaultCategoryEnum, name="fault_category", values_callable=enum_values),
        nullable=False,
    )
    priority = Column(
        SQLEnum(FaultPriorityEnum, name="fault_priority", values_callable=enum_values),
        nullable=False,
        default=FaultPriorityEnum.MEDIUM,
    )
    description = Column(Text, nullable=False)
    photo_url = Column(String(1024), nullable=True)

    status = Column(
        SQLEnum(FaultStatusEnum, name="fault_status", values_callable=enum_values),
        nullable=False,
        default=FaultStatusEnum.OPEN,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    machine = relationship("Machine")
    department = relationship("Department")
    reporter = relationship("User", foreign_keys=[reporter_id])

    assignments = relationship(
        "Assignment",
        back_populates="fault_report",
        cascade="all, delete-orphan",
        order_by="Assignment.assigned_at",
    )
    actions = relationship(
        "MaintenanceAction",
        back_populates="fault_report",
        cascade="all, delete-orphan",
        order_by="MaintenanceAction.created_at",
    )


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


class Assignment(Base):
    """
    One fault bound to one assignee.

    The partial unique index is the storage-side guard for "one open
    assignment per fault"; the service checks first and the index catches
    concurrent inserts that slip past the check.
    """

    __tablename__ = "assignments"
    __table_args__ = (
        Index(
            "uq_assignments_open_per_fault",
            "fault_report_id",
            unique=True,
            sqlite_where=text("completed_at IS NULL"),
            postgresql_where=text("completed_at IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    fault_report_id = Column(
        String(36),
        ForeignKey("fault_reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_to_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_by_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    fault_report = relationship("FaultReport", back_populates="assignments")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])

    @property
    def is_open(self) -> bool:
        return self.completed_at is None


# ---------------------------------------------------------------------------
# MaintenanceAction
# ---------------------------------------------------------------------------


class MaintenanceAction(Base):
    """
    Unit of work performed on a fault: what was done, parts used, cost and
    minutes spent. Never updated or deleted by the application.
    """

    __tablename__ = "maintenance_actions"
    __table_args__ = (
        CheckConstraint("cost >= 0", name="ck_maintenance_actions_cost_non_negative"),
        CheckConstraint("action_time >= 0", name="ck_maintenance_actions_time_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    fault_report_id = Column(
        String(36),
        ForeignKey("fault_reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    personnel_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    description = Column(Text, nullable=False)
    spare_parts = Column(Text, nullable=True)
    cost = Column(Float, nullable=False, default=0.0)
    action_time = Column(Integer, nullable=False, default=0)  # minutes

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    fault_report = relationship("FaultReport", back_populates="actions")
    personnel = relationship("User")
