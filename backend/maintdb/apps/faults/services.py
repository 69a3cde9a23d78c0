# backend/maintdb/apps/faults/services.py
#
# Fault lifecycle and assignment ledger.
#
# Responsibilities:
# - Report faults (department copied from the machine).
# - Offer eligible assignees and commit assignments (one open per fault).
# - Drive open -> assigned -> in_progress -> completed -> closed through the
#   workflow engine, plus the edit reset back to open.
# - Append maintenance actions.
#
# Every multi-write effect runs inside `atomic(db)` so the status change and
# the assignment row change land together or not at all.

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from maintdb.apps.accounts import services as account_services
from maintdb.apps.accounts.models import AccountRole, User
from maintdb.apps.audit import services as audit_services
from maintdb.apps.plant import services as plant_services
from maintdb.apps.workflow import apply_transition
from maintdb.database import atomic
from maintdb.errors import (
    AssignmentConflict,
    IneligibleAssignee,
    InvalidTransition,
    not_found,
)

from . import models, schemas
from .matching import eligible_personnel, is_eligible, required_specializations

logger = logging.getLogger(__name__)

ENTITY_TYPE = "fault_report"

# "reject": a second open assignment is refused with AssignmentConflict.
# "replace": the existing open assignment is voided and the new one wins.
ASSIGNMENT_CONFLICT_POLICY = os.getenv("ASSIGNMENT_CONFLICT_POLICY", "reject").strip().lower()

CONFLICT_POLICIES = {"reject", "replace"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot(fault: models.FaultReport) -> dict:
    return {
        "id": fault.id,
        "status": fault.status,
        "category": fault.category,
        "priority": fault.priority,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_fault(db: Session, fault_id: str) -> models.FaultReport:
    fault = db.get(models.FaultReport, fault_id)
    if fault is None:
        raise not_found("fault_report", fault_id)
    return fault


def open_assignments(db: Session, fault_id: str) -> List[models.Assignment]:
    return (
        db.query(models.Assignment)
        .filter(
            models.Assignment.fault_report_id == fault_id,
            models.Assignment.completed_at.is_(None),
        )
        .order_by(models.Assignment.assigned_at.asc())
        .all()
    )


def current_assignment(db: Session, fault_id: str) -> Optional[models.Assignment]:
    rows = open_assignments(db, fault_id)
    return rows[0] if rows else None


def list_faults(db: Session, filters: Optional[schemas.FaultFilter] = None) -> List[models.FaultReport]:
    """
    Read-by-filter. `assignee_id` matches faults whose *open* assignment
    belongs to that person.
    """
    filters = filters or schemas.FaultFilter()
    q = db.query(models.FaultReport)

    if filters.statuses:
        q = q.filter(models.FaultReport.status.in_(filters.statuses))
    if filters.department_id:
        q = q.filter(models.FaultReport.department_id == filters.department_id)
    if filters.machine_id:
        q = q.filter(models.FaultReport.machine_id == filters.machine_id)
    if filters.category:
        q = q.filter(models.FaultReport.category == filters.category)
    if filters.priority:
        q = q.filter(models.FaultReport.priority == filters.priority)
    if filters.created_from:
        q = q.filter(models.FaultReport.created_at >= filters.created_from)
    if filters.created_to:
        q = q.filter(models.FaultReport.created_at <= filters.created_to)
    if filters.search:
        q = q.filter(models.FaultReport.description.ilike(f"%{filters.search.strip()}%"))
    if filters.assignee_id:
        q = q.join(models.Assignment).filter(
            models.Assignment.assigned_to_id == filters.assignee_id,
            models.Assignment.completed_at.is_(None),
        )

    return q.order_by(models.FaultReport.created_at.desc()).all()


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def create_fault(
    db: Session,
    *,
    payload: schemas.FaultReportCreate,
    reporter: User,
    now: Optional[datetime] = None,
) -> models.FaultReport:
    now = now or _utcnow()
    machine = plant_services.get_machine(db, payload.machine_id)

    with atomic(db):
        fault = models.FaultReport(
            machine_id=machine.id,
            department_id=machine.department_id,
            reporter_id=reporter.id,
            category=payload.category,
            priority=payload.priority,
            description=payload.description,
            photo_url=payload.photo_url,
            status=models.FaultStatusEnum.OPEN,
            created_at=now,
            updated_at=now,
        )
        db.add(fault)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=reporter.id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            action="create",
            after={"status": fault.status.value, "category": fault.category.value, "priority": fault.priority.value},
        )

    logger.info(
        "Fault reported",
        extra={"fault_id": fault.id, "machine_id": machine.id, "category": fault.category.value},
    )
    return fault


# ---------------------------------------------------------------------------
# Assignment ledger
# ---------------------------------------------------------------------------


def eligible_assignees(
    db: Session,
    *,
    fault: models.FaultReport,
    department_id: Optional[str] = None,
) -> List[User]:
    """Maintenance personnel (optionally from one department) able to take this fault."""
    roster = account_services.list_personnel(db, department_id=department_id)
    return eligible_personnel(fault.category, roster)


def assign_fault(
    db: Session,
    *,
    fault_id: str,
    personnel_id: str,
    assigner_id: Optional[str],
    now: Optional[datetime] = None,
    policy: Optional[str] = None,
) -> models.Assignment:
    """
    Commit an assignment and move the fault to "assigned".

    Raises IneligibleAssignee when the person is not active maintenance
    personnel with an accepted specialization, AssignmentConflict when an
    open assignment exists and the policy is "reject", InvalidTransition when
    the fault is not open.
    """
    now = now or _utcnow()
    policy = (policy or ASSIGNMENT_CONFLICT_POLICY).lower()
    if policy not in CONFLICT_POLICIES:
        raise ValueError(f"Unknown assignment conflict policy {policy!r}")

    fault = get_fault(db, fault_id)
    person = account_services.get_user(db, personnel_id)

    if person.role != AccountRole.MAINTENANCE_PERSONNEL or not person.is_active:
        raise IneligibleAssignee(
            detail=[{"field": "personnel_id", "reason": "assignee must be active maintenance personnel"}]
        )
    if not is_eligible(fault.category, person):
        accepted = ", ".join(spec.value for spec in required_specializations(fault.category))
        raise IneligibleAssignee(
            detail=[{
                "field": "specialization",
                "reason": f"{person.effective_specialization.value} does not cover {fault.category.value} (accepted: {accepted})",
            }]
        )

    existing = open_assignments(db, fault.id)
    if existing and policy == "reject":
        raise AssignmentConflict(
            detail=[{"field": "fault_report_id", "reason": "fault already has an open assignment"}]
        )

    allowed_from = {models.FaultStatusEnum.OPEN}
    if policy == "replace":
        allowed_from.add(models.FaultStatusEnum.ASSIGNED)
    if fault.status not in allowed_from:
        raise InvalidTransition(
            detail=[{"field": "status", "reason": f"cannot assign a fault in status {fault.status.value}"}]
        )

    before = _snapshot(fault)
    with atomic(db):
        for stale in existing:
            db.delete(stale)
        # the open-assignment index must see the delete before the insert
        db.flush()

        assignment = models.Assignment(
            fault_report_id=fault.id,
            assigned_to_id=person.id,
            assigned_by_id=assigner_id,
            assigned_at=now,
        )
        db.add(assignment)
        db.flush()

        apply_transition(
            db,
            actor_user_id=assigner_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            from_state=fault.status,
            to_state=models.FaultStatusEnum.ASSIGNED,
            before_obj=before,
            after_obj={
                "id": fault.id,
                "assigned_to_id": person.id,
                "replaced_assignment_ids": [row.id for row in existing],
            },
        )
        fault.status = models.FaultStatusEnum.ASSIGNED
        fault.updated_at = now
        db.add(fault)

    db.expire(fault, ["assignments"])
    logger.info(
        "Fault assigned",
        extra={"fault_id": fault.id, "assignee_id": person.id, "replaced": len(existing)},
    )
    return assignment


def start_work(
    db: Session,
    *,
    fault_id: str,
    actor_id: str,
    now: Optional[datetime] = None,
) -> models.FaultReport:
    """The assignee picks the fault up: assigned -> in_progress."""
    now = now or _utcnow()
    fault = get_fault(db, fault_id)
    assignment = current_assignment(db, fault.id)
    if assignment is not None and assignment.assigned_to_id != actor_id:
        raise InvalidTransition(
            detail=[{"field": "assigned_to_id", "reason": "only the assignee can start work"}]
        )

    before = _snapshot(fault)
    with atomic(db):
        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            from_state=fault.status,
            to_state=models.FaultStatusEnum.IN_PROGRESS,
            before_obj=before,
            after_obj={"id": fault.id},
        )
        fault.status = models.FaultStatusEnum.IN_PROGRESS
        fault.updated_at = now
        db.add(fault)
    return fault


def record_action(
    db: Session,
    *,
    fault_id: str,
    actor_id: str,
    payload: schemas.MaintenanceActionCreate,
    now: Optional[datetime] = None,
) -> models.MaintenanceAction:
    """Append a maintenance action; only the assignee of an in-progress fault may log work."""
    now = now or _utcnow()
    fault = get_fault(db, fault_id)
    if fault.status != models.FaultStatusEnum.IN_PROGRESS:
        raise InvalidTransition(
            detail=[{"field": "status", "reason": "actions can only be recorded while work is in progress"}]
        )
    assignment = current_assignment(db, fault.id)
    if assignment is None or assignment.assigned_to_id != actor_id:
        raise InvalidTransition(
            detail=[{"field": "personnel_id", "reason": "only the assignee can record actions"}]
        )

    with atomic(db):
        action = models.MaintenanceAction(
            fault_report_id=fault.id,
            personnel_id=actor_id,
            description=payload.description,
            spare_parts=payload.spare_parts,
            cost=payload.cost,
            action_time=payload.action_time,
            created_at=now,
        )
        db.add(action)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            action="maintenance_action",
            after={"action_id": action.id, "cost": action.cost, "action_time": action.action_time},
        )
    db.expire(fault, ["actions"])
    return action


def complete_fault(
    db: Session,
    *,
    fault_id: str,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
) -> models.FaultReport:
    """
    Close the open assignment and move the fault to "completed" in one unit.

    Requires status in_progress and exactly one open assignment; anything else
    is an InvalidTransition.
    """
    now = now or _utcnow()
    fault = get_fault(db, fault_id)
    if fault.status != models.FaultStatusEnum.IN_PROGRESS:
        raise InvalidTransition(
            detail=[{"field": "status", "reason": f"cannot complete a fault in status {fault.status.value}"}]
        )

    rows = open_assignments(db, fault.id)
    if len(rows) != 1:
        raise InvalidTransition(
            detail=[{"field": "assignment", "reason": f"expected one open assignment, found {len(rows)}"}]
        )
    assignment = rows[0]

    before = _snapshot(fault)
    with atomic(db):
        assignment.completed_at = now
        db.add(assignment)
        db.flush()

        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            from_state=fault.status,
            to_state=models.FaultStatusEnum.COMPLETED,
            before_obj=before,
            after_obj={
                "id": fault.id,
                "assignment_id": assignment.id,
                "assignment_completed_at": assignment.completed_at,
            },
        )
        fault.status = models.FaultStatusEnum.COMPLETED
        fault.updated_at = now
        db.add(fault)

    logger.info("Fault completed", extra={"fault_id": fault.id, "assignment_id": assignment.id})
    return fault


def close_fault(
    db: Session,
    *,
    fault_id: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.FaultReport:
    """Administrative finalisation: completed -> closed."""
    now = now or _utcnow()
    fault = get_fault(db, fault_id)
    before = _snapshot(fault)
    with atomic(db):
        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            from_state=fault.status,
            to_state=models.FaultStatusEnum.CLOSED,
            before_obj=before,
            after_obj={"id": fault.id},
        )
        fault.status = models.FaultStatusEnum.CLOSED
        fault.updated_at = now
        db.add(fault)
    return fault


# ---------------------------------------------------------------------------
# Edit with reset
# ---------------------------------------------------------------------------


def edit_fault(
    db: Session,
    *,
    fault_id: str,
    payload: schemas.FaultReportEdit,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.FaultReport:
    """
    Apply an edit to category / priority / description and reset the fault.

    In one unit: fields are updated, the open assignment (if any) is deleted,
    status becomes "open" and updated_at is bumped. Assignments that were
    already completed stay as history. Department never changes.
    A payload that names no field leaves the fault untouched.
    """
    now = now or _utcnow()
    fault = get_fault(db, fault_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        return fault

    before = _snapshot(fault)
    voided = open_assignments(db, fault.id)

    with atomic(db):
        for field, value in data.items():
            setattr(fault, field, value)
        for row in voided:
            db.delete(row)
        db.flush()

        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=fault.id,
            from_state=fault.status,
            to_state=models.FaultStatusEnum.OPEN,
            before_obj=before,
            after_obj={
                "id": fault.id,
                "category": fault.category,
                "priority": fault.priority,
                "voided_assignment_ids": [row.id for row in voided],
            },
        )
        fault.status = models.FaultStatusEnum.OPEN
        fault.updated_at = now
        db.add(fault)

    db.expire(fault, ["assignments"])
    if voided:
        logger.info(
            "Fault edit voided open assignment",
            extra={"fault_id": fault.id, "voided": [row.id for row in voided]},
        )
    return fault
