# backend/maintdb/apps/faults/router.py
"""
Fault reports API.

- Fault reports: report, list, read, edit (edit resets to open).
- Assignments: eligible assignees for a fault, assign.
- Work: start, log maintenance actions, complete, close.

Role model (from security / AccountRole):
- MANAGER and DEPARTMENT_MANAGER report, edit, assign and close; department managers
  only inside their own department. ADMIN always passes.
- MAINTENANCE_PERSONNEL start, log and complete faults assigned to them.

Domain errors (NotFound, IneligibleAssignee, AssignmentConflict, ...) are
mapped to HTTP responses by the handlers registered in maintdb.main.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...database import atomic, get_db
from ...security import (
    department_scope,
    ensure_department_access,
    get_current_active_user,
    require_roles,
)
from maintdb.apps.accounts import services as account_services
from maintdb.apps.accounts.models import AccountRole, User
from maintdb.apps.plant import services as plant_services

from . import models, schemas, services
from .matching import required_specializations

router = APIRouter(
    prefix="/faults",
    tags=["faults"],
    dependencies=[Depends(get_current_active_user)],
)

MANAGER_ROLES = (AccountRole.MANAGER, AccountRole.DEPARTMENT_MANAGER)


def _load_scoped(db: Session, fault_id: str, user: User) -> models.FaultReport:
    fault = services.get_fault(db, fault_id)
    ensure_department_access(user, fault.department_id)
    return fault


# ---------------------------------------------------------------------------
# Fault reports
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[schemas.FaultReportRead])
def list_faults(
    status_in: Optional[List[models.FaultStatusEnum]] = Query(default=None, alias="status"),
    department_id: Optional[str] = None,
    machine_id: Optional[str] = None,
    assignee_id: Optional[str] = None,
    category: Optional[models.FaultCategoryEnum] = None,
    priority: Optional[models.FaultPriorityEnum] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List faults. Department managers are always restricted to their own
    department; maintenance personnel see what is assigned to them.
    """
    scope = department_scope(current_user)
    if current_user.role == AccountRole.MAINTENANCE_PERSONNEL:
        assignee_id = current_user.id

    filters = schemas.FaultFilter(
        statuses=status_in,
        department_id=scope or department_id,
        machine_id=machine_id,
        assignee_id=assignee_id,
        category=category,
        priority=priority,
        created_from=created_from,
        created_to=created_to,
        search=search,
    )
    return services.list_faults(db, filters)


@router.get("/{fault_id}", response_model=schemas.FaultReportRead)
def get_fault(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return _load_scoped(db, fault_id, current_user)


@router.post(
    "/",
    response_model=schemas.FaultReportRead,
    status_code=status.HTTP_201_CREATED,
)
def report_fault(
    payload: schemas.FaultReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
):
    if department_scope(current_user) is not None:
        machine = plant_services.get_machine(db, payload.machine_id)
        ensure_department_access(current_user, machine.department_id)
    with atomic(db, commit=True):
        fault = services.create_fault(db, payload=payload, reporter=current_user)
    return fault


@router.patch("/{fault_id}", response_model=schemas.FaultReportRead)
def edit_fault(
    fault_id: str,
    payload: schemas.FaultReportEdit,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
):
    """
    Edit category / priority / description. The fault goes back to "open" and
    any open assignment is dropped, so it has to be assigned again.
    """
    fault = _load_scoped(db, fault_id, current_user)
    with atomic(db, commit=True):
        fault = services.edit_fault(db, fault_id=fault.id, payload=payload, actor_id=current_user.id)
    return fault


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


@router.get("/{fault_id}/eligible-assignees", response_model=schemas.EligibleAssignees)
def eligible_assignees(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
):
    fault = _load_scoped(db, fault_id, current_user)
    personnel = services.eligible_assignees(
        db, fault=fault, department_id=department_scope(current_user)
    )
    return schemas.EligibleAssignees(
        fault_id=fault.id,
        required_specializations=list(required_specializations(fault.category)),
        personnel=[schemas.EligiblePerson.model_validate(p) for p in personnel],
    )


@router.post(
    "/{fault_id}/assignments",
    response_model=schemas.AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def assign_fault(
    fault_id: str,
    payload: schemas.AssignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
):
    fault = _load_scoped(db, fault_id, current_user)
    if department_scope(current_user) is not None:
        person = account_services.get_user(db, payload.personnel_id)
        ensure_department_access(current_user, person.department_id)
    with atomic(db, commit=True):
        assignment = services.assign_fault(
            db,
            fault_id=fault.id,
            personnel_id=payload.personnel_id,
            assigner_id=current_user.id,
        )
    return assignment


# ---------------------------------------------------------------------------
# Work
# ---------------------------------------------------------------------------


@router.post("/{fault_id}/start", response_model=schemas.FaultReportRead)
def start_work(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MAINTENANCE_PERSONNEL)),
):
    with atomic(db, commit=True):
        fault = services.start_work(db, fault_id=fault_id, actor_id=current_user.id)
    return fault


@router.get("/{fault_id}/actions", response_model=List[schemas.MaintenanceActionRead])
def list_actions(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return _load_scoped(db, fault_id, current_user).actions


@router.post(
    "/{fault_id}/actions",
    response_model=schemas.MaintenanceActionRead,
    status_code=status.HTTP_201_CREATED,
)
def record_action(
    fault_id: str,
    payload: schemas.MaintenanceActionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MAINTENANCE_PERSONNEL)),
):
    with atomic(db, commit=True):
        action = services.record_action(db, fault_id=fault_id, actor_id=current_user.id, payload=payload)
    return action


@router.post("/{fault_id}/complete", response_model=schemas.FaultReportRead)
def complete_fault(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MAINTENANCE_PERSONNEL)),
):
    assignment = services.current_assignment(db, fault_id)
    if not current_user.is_admin and (assignment is None or assignment.assigned_to_id != current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assignee can complete this fault",
        )
    with atomic(db, commit=True):
        fault = services.complete_fault(db, fault_id=fault_id, actor_id=current_user.id)
    return fault


@router.post("/{fault_id}/close", response_model=schemas.FaultReportRead)
def close_fault(
    fault_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
):
    fault = _load_scoped(db, fault_id, current_user)
    with atomic(db, commit=True):
        fault = services.close_fault(db, fault_id=fault.id, actor_id=current_user.id)
    return fault
