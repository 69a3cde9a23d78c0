# backend/maintdb/apps/reports/router.py
"""
Reporting API (read-only, served from the read replica when configured).

Department managers only ever see their own department.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_read_db
from ...security import department_scope, get_current_active_user, require_roles
from maintdb.apps.accounts import services as account_services
from maintdb.apps.accounts.models import AccountRole, User
from maintdb.apps.plant import services as plant_services

from . import schemas, services

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    dependencies=[Depends(get_current_active_user)],
)

REPORT_ROLES = (AccountRole.MANAGER, AccountRole.DEPARTMENT_MANAGER)


@router.get("/dashboard", response_model=schemas.DashboardSummary)
def dashboard(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    faults = services.load_faults(db, department_id=department_scope(current_user))
    return services.dashboard_summary(faults, current_user.id)


@router.get("/faults", response_model=schemas.FaultStatistics)
def fault_statistics(
    department_id: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(*REPORT_ROLES)),
):
    faults = services.load_faults(
        db,
        department_id=department_scope(current_user) or department_id,
        created_from=created_from,
        created_to=created_to,
    )
    return services.fault_statistics(faults, now=created_to)


@router.get("/personnel", response_model=List[schemas.PersonnelPerformance])
def personnel_performance(
    department_id: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(*REPORT_ROLES)),
):
    scope = department_scope(current_user) or department_id
    faults = services.load_faults(db, department_id=scope, created_from=created_from, created_to=created_to)
    personnel = account_services.list_personnel(db, department_id=scope)
    return services.personnel_performance(personnel, faults)


@router.get("/machines", response_model=List[schemas.MachineReport])
def machine_report(
    department_id: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(*REPORT_ROLES)),
):
    scope = department_scope(current_user) or department_id
    faults = services.load_faults(db, department_id=scope, created_from=created_from, created_to=created_to)
    machines = plant_services.list_machines(db, department_id=scope)
    return services.machine_report(machines, faults)
