# backend/maintdb/apps/plant/router.py
"""
Departments and machines.

Everyone signed in can read; ADMIN and MANAGER maintain the lists.
Department managers reading machines only see their own department.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maintdb.apps.accounts.models import AccountRole, User
from maintdb.database import atomic, get_db
from maintdb.security import department_scope, get_current_active_user, require_roles

from . import schemas, services

router = APIRouter(tags=["plant"], dependencies=[Depends(get_current_active_user)])


@router.get("/departments", response_model=List[schemas.DepartmentRead])
def list_departments(db: Session = Depends(get_db)):
    return services.list_departments(db)


@router.post(
    "/departments",
    response_model=schemas.DepartmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_department(
    payload: schemas.DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MANAGER)),
):
    with atomic(db, commit=True):
        department = services.create_department(db, payload=payload)
    return department


@router.get("/machines", response_model=List[schemas.MachineRead])
def list_machines(
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.list_machines(db, department_id=department_scope(current_user) or department_id)


@router.post(
    "/machines",
    response_model=schemas.MachineRead,
    status_code=status.HTTP_201_CREATED,
)
def create_machine(
    payload: schemas.MachineCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.MANAGER)),
):
    with atomic(db, commit=True):
        machine = services.create_machine(db, payload=payload)
    return machine
