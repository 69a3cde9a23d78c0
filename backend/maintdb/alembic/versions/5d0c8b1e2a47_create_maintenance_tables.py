"""
Create departments, users, machines, fault reports, assignments, maintenance
actions, maintenance schedules and audit events.

Revision ID: 5d0c8b1e2a47
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5d0c8b1e2a47"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ACCOUNT_ROLES = ("admin", "manager", "department_manager", "maintenance_personnel")
SPECIALIZATIONS = ("General", "Mechanical", "Electric", "IT", "Pneumatic", "Hydraulic", "Software")
FAULT_CATEGORIES = ("Mechanical", "Electric", "IT", "Pneumatic", "Hydraulic", "Software", "Other")
FAULT_PRIORITIES = ("low", "medium", "high", "urgent")
FAULT_STATUSES = ("open", "assigned", "in_progress", "completed", "closed")
MAINTENANCE_CATEGORIES = (
    "preventive", "periodic", "calibration", "cleaning", "lubrication", "inspection", "other",
)
SCHEDULE_PRIORITIES = ("low", "medium", "high", "critical")
SCHEDULE_STATUSES = ("planned", "assigned", "in_progress", "completed", "postponed", "cancelled")
RECURRENCE_TYPES = ("daily", "weekly", "monthly", "quarterly", "semiannual", "yearly")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "departments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum(*ACCOUNT_ROLES, name="account_role_enum"), nullable=False),
        sa.Column(
            "department_id",
            sa.String(length=36),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("specialization", sa.Enum(*SPECIALIZATIONS, name="specialization_enum"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_department_id", "users", ["department_id"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "machines",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "department_id",
            sa.String(length=36),
            sa.ForeignKey("departments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        _ts("created_at"),
    )
    op.create_index("ix_machines_name", "machines", ["name"])
    op.create_index("ix_machines_department_id", "machines", ["department_id"])

    op.create_table(
        "fault_reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("machine_id", sa.String(length=36), sa.ForeignKey("machines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("department_id", sa.String(length=36), sa.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reporter_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("category", sa.Enum(*FAULT_CATEGORIES, name="fault_category"), nullable=False),
        sa.Column("priority", sa.Enum(*FAULT_PRIORITIES, name="fault_priority"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("photo_url", sa.String(length=1024), nullable=True),
        sa.Column("status", sa.Enum(*FAULT_STATUSES, name="fault_status"), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_fault_reports_machine_id", "fault_reports", ["machine_id"])
    op.create_index("ix_fault_reports_department_id", "fault_reports", ["department_id"])
    op.create_index("ix_fault_reports_reporter_id", "fault_reports", ["reporter_id"])
    op.create_index("ix_fault_reports_status", "fault_reports", ["status"])
    op.create_index("ix_fault_reports_created_at", "fault_reports", ["created_at"])
    op.create_index("ix_fault_reports_dept_status", "fault_reports", ["department_id", "status"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("fault_report_id", sa.String(length=36), sa.ForeignKey("fault_reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_to_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_by_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("assigned_at"),
        _ts("completed_at", nullable=True),
    )
    op.create_index("ix_assignments_fault_report_id", "assignments", ["fault_report_id"])
    op.create_index("ix_assignments_assigned_to_id", "assignments", ["assigned_to_id"])
    op.create_index(
        "uq_assignments_open_per_fault",
        "assignments",
        ["fault_report_id"],
        unique=True,
        sqlite_where=sa.text("completed_at IS NULL"),
        postgresql_where=sa.text("completed_at IS NULL"),
    )

    op.create_table(
        "maintenance_actions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("fault_report_id", sa.String(length=36), sa.ForeignKey("fault_reports.id", ondelete="CASCADE"), nullable=False),
        sa.Column("personnel_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("spare_parts", sa.Text(), nullable=True),
        sa.Column("cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("action_time", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
        sa.CheckConstraint("cost >= 0", name="ck_maintenance_actions_cost_non_negative"),
        sa.CheckConstraint("action_time >= 0", name="ck_maintenance_actions_time_non_negative"),
    )
    op.create_index("ix_maintenance_actions_fault_report_id", "maintenance_actions", ["fault_report_id"])
    op.create_index("ix_maintenance_actions_personnel_id", "maintenance_actions", ["personnel_id"])

    op.create_table(
        "maintenance_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("machine_id", sa.String(length=36), sa.ForeignKey("machines.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("department_id", sa.String(length=36), sa.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_to_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("maintenance_type", sa.Enum(*MAINTENANCE_CATEGORIES, name="maintenance_category"), nullable=False),
        sa.Column("priority", sa.Enum(*SCHEDULE_PRIORITIES, name="schedule_priority"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=True),
        sa.Column("status", sa.Enum(*SCHEDULE_STATUSES, name="schedule_status"), nullable=False),
        sa.Column("recurrence_type", sa.Enum(*RECURRENCE_TYPES, name="recurrence_type"), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), nullable=True),
        sa.Column("next_occurrence", sa.Date(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("actual_duration", sa.Integer(), nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("end_date >= start_date", name="ck_schedule_end_after_start"),
        sa.CheckConstraint(
            "recurrence_interval IS NULL OR recurrence_interval >= 1",
            name="ck_schedule_interval_positive",
        ),
    )
    op.create_index("ix_maintenance_schedules_machine_id", "maintenance_schedules", ["machine_id"])
    op.create_index("ix_maintenance_schedules_department_id", "maintenance_schedules", ["department_id"])
    op.create_index("ix_maintenance_schedules_assigned_to_id", "maintenance_schedules", ["assigned_to_id"])
    op.create_index("ix_maintenance_schedules_start_date", "maintenance_schedules", ["start_date"])
    op.create_index("ix_maintenance_schedules_status", "maintenance_schedules", ["status"])
    op.create_index("ix_schedules_dept_start", "maintenance_schedules", ["department_id", "start_date"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("occurred_at"),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"])
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("maintenance_schedules")
    op.drop_table("maintenance_actions")
    op.drop_table("assignments")
    op.drop_table("fault_reports")
    op.drop_table("machines")
    op.drop_table("users")
    op.drop_table("departments")

    bind = op.get_bind()
    for enum_name in (
        "recurrence_type",
        "schedule_status",
        "schedule_priority",
        "maintenance_category",
        "fault_status",
        "fault_priority",
        "fault_category",
        "specialization_enum",
        "account_role_enum",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
