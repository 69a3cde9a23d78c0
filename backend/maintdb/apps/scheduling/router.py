# backend/maintdb/apps/scheduling/router.py
"""
Maintenance calendar API.

- Schedules: list, month calendar, create, read, update, delete.
- Lifecycle: status change (start / postpone / resume / cancel) and complete,
  which emits the next occurrence for recurring schedules.
- Next-occurrence preview for the planning form.

Role model:
- MANAGER and DEPARTMENT_MANAGER plan, edit and delete (department managers
  within their own department). ADMIN always passes.
- The assigned MAINTENANCE_PERSONNEL may start, postpone and complete.
"""

from __future__ import annotations

from datetime import date
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
from maintdb.apps.accounts.models import AccountRole, User
from maintdb.apps.plant import services as plant_services

from . import models, schemas, services
from .recurrence import next_occurrence

router = APIRouter(
    prefix="/schedules",
    tags=["schedules"],
    dependencies=[Depends(get_current_active_user)],
)

PLANNER_ROLES = (AccountRole.MANAGER, AccountRole.DEPARTMENT_MANAGER)


def _load_scoped(db: Session, schedule_id: str, user: User) -> models.MaintenanceSchedule:
    schedule = services.get_schedule(db, schedule_id)
    ensure_department_access(user, schedule.department_id)
    return schedule


def _ensure_planner_or_assignee(user: User, schedule: models.MaintenanceSchedule) -> None:
    if user.is_admin or user.role in PLANNER_ROLES:
        return
    if schedule.assigned_to_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assignee or a planner can change this schedule",
        )


def _filters(
    user: User,
    *,
    statuses: Optional[List[models.ScheduleStatusEnum]],
    department_id: Optional[str],
    machine_id: Optional[str],
    maintenance_type: Optional[models.MaintenanceCategoryEnum],
    assignee_id: Optional[str],
    date_from: Optional[date],
    date_to: Optional[date],
    search: Optional[str],
) -> schemas.ScheduleFilter:
    if user.role == AccountRole.MAINTENANCE_PERSONNEL:
        assignee_id = user.id
    return schemas.ScheduleFilter(
        statuses=statuses,
        department_id=department_scope(user) or department_id,
        machine_id=machine_id,
        maintenance_type=maintenance_type,
        assignee_id=assignee_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[schemas.ScheduleRead])
def list_schedules(
    status_in: Optional[List[models.ScheduleStatusEnum]] = Query(default=None, alias="status"),
    department_id: Optional[str] = None,
    machine_id: Optional[str] = None,
    maintenance_type: Optional[models.MaintenanceCategoryEnum] = None,
    assignee_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    filters = _filters(
        current_user,
        statuses=status_in,
        department_id=department_id,
        machine_id=machine_id,
        maintenance_type=maintenance_type,
        assignee_id=assignee_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return services.list_schedules(db, filters)


@router.get("/calendar/{year}/{month}", response_model=schemas.CalendarMonth)
def calendar_month(
    year: int,
    month: int,
    status_in: Optional[List[models.ScheduleStatusEnum]] = Query(default=None, alias="status"),
    department_id: Optional[str] = None,
    maintenance_type: Optional[models.MaintenanceCategoryEnum] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="month must be 1-12")

    filters = _filters(
        current_user,
        statuses=status_in,
        department_id=department_id,
        machine_id=None,
        maintenance_type=maintenance_type,
        assignee_id=None,
        date_from=None,
        date_to=None,
        search=None,
    )
    days = services.calendar_month(db, year=year, month=month, filters=filters)
    return schemas.CalendarMonth(
        year=year,
        month=month,
        days=[
            schemas.CalendarDay(
                day=day,
                schedules=[schemas.ScheduleRead.model_validate(s) for s in schedules],
            )
            for day, schedules in days.items()
        ],
    )


@router.get("/next-occurrence", response_model=schemas.NextOccurrencePreview)
def preview_next_occurrence(
    start_date: date,
    recurrence_type: Optional[models.RecurrenceTypeEnum] = None,
    recurrence_interval: int = Query(default=1, ge=1),
):
    return schemas.NextOccurrencePreview(
        start_date=start_date,
        recurrence_type=recurrence_type,
        recurrence_interval=recurrence_interval,
        next_occurrence=next_occurrence(start_date, recurrence_type, recurrence_interval),
    )


@router.get("/{schedule_id}", response_model=schemas.ScheduleRead)
def get_schedule(
    schedule_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return _load_scoped(db, schedule_id, current_user)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


@router.post(
    "/",
    response_model=schemas.ScheduleRead,
    status_code=status.HTTP_201_CREATED,
)
def create_schedule(
    payload: schemas.ScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
):
    if department_scope(current_user) is not None:
        machine = plant_services.get_machine(db, payload.machine_id)
        ensure_department_access(current_user, machine.department_id)
    with atomic(db, commit=True):
        schedule = services.create_schedule(db, payload=payload, actor_id=current_user.id)
    return schedule


@router.patch("/{schedule_id}", response_model=schemas.ScheduleRead)
def update_schedule(
    schedule_id: str,
    payload: schemas.ScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
):
    schedule = _load_scoped(db, schedule_id, current_user)
    with atomic(db, commit=True):
        schedule = services.update_schedule(
            db, schedule_id=schedule.id, payload=payload, actor_id=current_user.id
        )
    return schedule


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PLANNER_ROLES)),
):
    schedule = _load_scoped(db, schedule_id, current_user)
    with atomic(db, commit=True):
        services.delete_schedule(db, schedule_id=schedule.id, actor_id=current_user.id)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/{schedule_id}/status", response_model=schemas.ScheduleRead)
def change_status(
    schedule_id: str,
    payload: schemas.ScheduleStatusChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    schedule = _load_scoped(db, schedule_id, current_user)
    _ensure_planner_or_assignee(current_user, schedule)
    with atomic(db, commit=True):
        schedule = services.change_schedule_status(
            db,
            schedule_id=schedule.id,
            to_status=payload.status,
            actor_id=current_user.id,
            reason=payload.reason,
        )
    return schedule


@router.post("/{schedule_id}/complete", response_model=schemas.ScheduleCompletionResult)
def complete_schedule(
    schedule_id: str,
    payload: schemas.ScheduleComplete,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    schedule = _load_scoped(db, schedule_id, current_user)
    _ensure_planner_or_assignee(current_user, schedule)
    with atomic(db, commit=True):
        completed, follow_up = services.complete_schedule(
            db,
            schedule_id=schedule.id,
            notes=payload.completion_notes,
            actual_duration=payload.actual_duration,
            actor_id=current_user.id,
        )
    return schemas.ScheduleCompletionResult(
        completed=schemas.ScheduleRead.model_validate(completed),
        next_schedule=schemas.ScheduleRead.model_validate(follow_up) if follow_up else None,
    )
