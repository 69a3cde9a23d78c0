from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from maintdb.database import atomic
from maintdb.errors import not_found

from . import models, schemas


def create_department(db: Session, *, payload: schemas.DepartmentCreate) -> models.Department:
    with atomic(db):
        department = models.Department(name=payload.name.strip(), description=payload.description)
        db.add(department)
    return department


def list_departments(db: Session) -> List[models.Department]:
    return db.query(models.Department).order_by(models.Department.name.asc()).all()


def get_machine(db: Session, machine_id: str) -> models.Machine:
    machine = db.get(models.Machine, machine_id)
    if machine is None:
        raise not_found("machine", machine_id)
    return machine


def create_machine(db: Session, *, payload: schemas.MachineCreate) -> models.Machine:
    if db.get(models.Department, payload.department_id) is None:
        raise not_found("department", payload.department_id)
    with atomic(db):
        machine = models.Machine(name=payload.name.strip(), department_id=payload.department_id)
        db.add(machine)
    return machine


def list_machines(db: Session, *, department_id: Optional[str] = None) -> List[models.Machine]:
    q = db.query(models.Machine)
    if department_id:
        q = q.filter(models.Machine.department_id == department_id)
    return q.order_by(models.Machine.name.asc()).all()
