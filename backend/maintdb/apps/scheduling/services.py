# backend/maintdb/apps/scheduling/services.py
#
# Planned maintenance calendar.
#
# Responsibilities:
# - Create / edit schedules, keeping next_occurrence in step with the
#   recurrence rule.
# - Drive the schedule workflow (start, postpone, resume, cancel).
# - Complete a schedule and, for recurring ones, emit the next occurrence in
#   the same unit of work.
# - Calendar reads grouped per day.

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from maintdb.apps.accounts import services as account_services
from maintdb.apps.accounts.models import AccountRole
from maintdb.apps.audit import services as audit_services
from maintdb.apps.plant import services as plant_services
from maintdb.apps.workflow import apply_transition
from maintdb.database import atomic
from maintdb.errors import IneligibleAssignee, InvalidSchedule, InvalidTransition, not_found

from . import models, schemas
from .recurrence import next_occurrence, validate_recurrence

logger = logging.getLogger(__name__)

ENTITY_TYPE = "maintenance_schedule"

# Statuses a caller may request through change_schedule_status.
MANUAL_TARGETS = {
    models.ScheduleStatusEnum.PLANNED,
    models.ScheduleStatusEnum.ASSIGNED,
    models.ScheduleStatusEnum.IN_PROGRESS,
    models.ScheduleStatusEnum.POSTPONED,
    models.ScheduleStatusEnum.CANCELLED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot(schedule: models.MaintenanceSchedule) -> dict:
    return {
        "id": schedule.id,
        "status": schedule.status,
        "assigned_to_id": schedule.assigned_to_id,
        "start_date": schedule.start_date,
        "end_date": schedule.end_date,
    }


def initial_status(assigned_to_id: Optional[str]) -> models.ScheduleStatusEnum:
    if assigned_to_id:
        return models.ScheduleStatusEnum.ASSIGNED
    return models.ScheduleStatusEnum.PLANNED


def _check_assignee(db: Session, assigned_to_id: Optional[str]) -> None:
    if not assigned_to_id:
        return
    person = account_services.get_user(db, assigned_to_id)
    if person.role != AccountRole.MAINTENANCE_PERSONNEL or not person.is_active:
        raise IneligibleAssignee(
            detail=[{"field": "assigned_to_id", "reason": "assignee must be active maintenance personnel"}]
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_schedule(db: Session, schedule_id: str) -> models.MaintenanceSchedule:
    schedule = db.get(models.MaintenanceSchedule, schedule_id)
    if schedule is None:
        raise not_found("maintenance_schedule", schedule_id)
    return schedule


def list_schedules(
    db: Session,
    filters: Optional[schemas.ScheduleFilter] = None,
) -> List[models.MaintenanceSchedule]:
    filters = filters or schemas.ScheduleFilter()
    q = db.query(models.MaintenanceSchedule)

    if filters.statuses:
        q = q.filter(models.MaintenanceSchedule.status.in_(filters.statuses))
    if filters.department_id:
        q = q.filter(models.MaintenanceSchedule.department_id == filters.department_id)
    if filters.machine_id:
        q = q.filter(models.MaintenanceSchedule.machine_id == filters.machine_id)
    if filters.maintenance_type:
        q = q.filter(models.MaintenanceSchedule.maintenance_type == filters.maintenance_type)
    if filters.assignee_id:
        q = q.filter(models.MaintenanceSchedule.assigned_to_id == filters.assignee_id)
    if filters.date_from:
        q = q.filter(models.MaintenanceSchedule.end_date >= filters.date_from)
    if filters.date_to:
        q = q.filter(models.MaintenanceSchedule.start_date <= filters.date_to)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        q = q.filter(
            or_(
                models.MaintenanceSchedule.title.ilike(pattern),
                models.MaintenanceSchedule.description.ilike(pattern),
            )
        )

    return q.order_by(
        models.MaintenanceSchedule.start_date.asc(),
        models.MaintenanceSchedule.created_at.asc(),
    ).all()


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def calendar_month(
    db: Session,
    *,
    year: int,
    month: int,
    filters: Optional[schemas.ScheduleFilter] = None,
) -> Dict[date, List[models.MaintenanceSchedule]]:
    """
    Schedules overlapping the month, keyed by every day of the month they
    cover. Days with nothing planned map to an empty list.
    """
    first, last = month_bounds(year, month)
    base = filters or schemas.ScheduleFilter()
    scoped = base.model_copy(update={"date_from": first, "date_to": last})

    days: Dict[date, List[models.MaintenanceSchedule]] = {
        first + timedelta(days=offset): [] for offset in range((last - first).days + 1)
    }
    for schedule in list_schedules(db, scoped):
        day = max(schedule.start_date, first)
        end = min(schedule.end_date, last)
        while day <= end:
            days[day].append(schedule)
            day += timedelta(days=1)
    return days


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


def create_schedule(
    db: Session,
    *,
    payload: schemas.ScheduleCreate,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.MaintenanceSchedule:
    now = now or _utcnow()
    machine = plant_services.get_machine(db, payload.machine_id)
    kind, interval = validate_recurrence(payload.recurrence_type, payload.recurrence_interval)
    _check_assignee(db, payload.assigned_to_id)

    with atomic(db):
        schedule = models.MaintenanceSchedule(
            machine_id=machine.id,
            department_id=machine.department_id,
            created_by_id=actor_id,
            assigned_to_id=payload.assigned_to_id,
            title=payload.title.strip(),
            description=payload.description,
            maintenance_type=payload.maintenance_type,
            priority=payload.priority,
            start_date=payload.start_date,
            end_date=payload.end_date,
            estimated_duration=payload.estimated_duration,
            status=initial_status(payload.assigned_to_id),
            recurrence_type=kind,
            recurrence_interval=interval,
            next_occurrence=next_occurrence(payload.start_date, kind, interval),
            created_at=now,
            updated_at=now,
        )
        db.add(schedule)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=schedule.id,
            action="create",
            after={
                "status": schedule.status.value,
                "start_date": schedule.start_date.isoformat(),
                "recurrence_type": kind.value if kind else None,
            },
        )
    return schedule


def update_schedule(
    db: Session,
    *,
    schedule_id: str,
    payload: schemas.ScheduleUpdate,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.MaintenanceSchedule:
    """
    Edit planning fields of a non-terminal schedule.

    Recurrence and dates are re-validated and next_occurrence recomputed.
    A planned schedule that gains an assignee becomes assigned; an assigned
    one that loses it goes back to planned.
    """
    now = now or _utcnow()
    schedule = get_schedule(db, schedule_id)
    if schedule.is_terminal:
        raise InvalidTransition(
            detail=[{"field": "status", "reason": f"{schedule.status.value} schedules cannot be edited"}]
        )

    data = payload.model_dump(exclude_unset=True)

    start = data.get("start_date", schedule.start_date)
    end = data.get("end_date", schedule.end_date)
    if end < start:
        raise InvalidSchedule(
            detail=[{"field": "end_date", "reason": "end_date must be on or after start_date"}]
        )

    recurrence_type = data.get("recurrence_type", schedule.recurrence_type)
    interval = data.get("recurrence_interval", schedule.recurrence_interval)
    kind, interval = validate_recurrence(recurrence_type, interval)

    if "assigned_to_id" in data:
        if not data["assigned_to_id"] and schedule.status == models.ScheduleStatusEnum.IN_PROGRESS:
            raise InvalidTransition(
                code="missing_requirements",
                detail=[{"field": "assigned_to_id", "reason": "work in progress needs an assignee"}],
            )
        _check_assignee(db, data["assigned_to_id"])

    before = _snapshot(schedule)
    with atomic(db):
        for field, value in data.items():
            setattr(schedule, field, value)
        schedule.recurrence_type = kind
        schedule.recurrence_interval = interval
        schedule.next_occurrence = next_occurrence(start, kind, schedule.recurrence_interval)

        target = schedule.status
        if schedule.status == models.ScheduleStatusEnum.PLANNED and schedule.assigned_to_id:
            target = models.ScheduleStatusEnum.ASSIGNED
        elif schedule.status == models.ScheduleStatusEnum.ASSIGNED and not schedule.assigned_to_id:
            target = models.ScheduleStatusEnum.PLANNED

        if target != schedule.status:
            apply_transition(
                db,
                actor_user_id=actor_id,
                entity_type=ENTITY_TYPE,
                entity_id=schedule.id,
                from_state=schedule.status,
                to_state=target,
                before_obj=before,
                after_obj=_snapshot(schedule),
            )
            schedule.status = target

        schedule.updated_at = now
        db.add(schedule)
    return schedule


def delete_schedule(db: Session, *, schedule_id: str, actor_id: Optional[str] = None) -> None:
    schedule = get_schedule(db, schedule_id)
    before = _snapshot(schedule)
    with atomic(db):
        db.delete(schedule)
        audit_services.log_event(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=schedule_id,
            action="delete",
            before={"status": before["status"].value, "title": schedule.title},
        )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def change_schedule_status(
    db: Session,
    *,
    schedule_id: str,
    to_status: models.ScheduleStatusEnum,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.MaintenanceSchedule:
    """
    Start, postpone, resume or cancel a schedule. Completion goes through
    `complete_schedule` so the next occurrence can be emitted.
    """
    now = now or _utcnow()
    to_status = models.ScheduleStatusEnum(to_status)
    if to_status not in MANUAL_TARGETS:
        raise InvalidTransition(
            detail=[{"field": "status", "reason": "use the completion operation to complete a schedule"}]
        )

    schedule = get_schedule(db, schedule_id)
    before = _snapshot(schedule)
    after = dict(before, reason=reason)

    with atomic(db):
        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=schedule.id,
            from_state=schedule.status,
            to_state=to_status,
            before_obj=before,
            after_obj=after,
        )
        schedule.status = to_status
        schedule.updated_at = now
        db.add(schedule)

    logger.info(
        "Schedule status changed",
        extra={"schedule_id": schedule.id, "from": before["status"].value, "to": to_status.value},
    )
    return schedule


def _emit_next_occurrence(
    db: Session,
    schedule: models.MaintenanceSchedule,
    now: datetime,
) -> models.MaintenanceSchedule:
    start = schedule.next_occurrence
    span = schedule.end_date - schedule.start_date
    follow_up = models.MaintenanceSchedule(
        machine_id=schedule.machine_id,
        department_id=schedule.department_id,
        created_by_id=schedule.created_by_id,
        assigned_to_id=schedule.assigned_to_id,
        title=schedule.title,
        description=schedule.description,
        maintenance_type=schedule.maintenance_type,
        priority=schedule.priority,
        start_date=start,
        end_date=start + span,
        estimated_duration=schedule.estimated_duration,
        status=initial_status(schedule.assigned_to_id),
        recurrence_type=schedule.recurrence_type,
        recurrence_interval=schedule.recurrence_interval,
        next_occurrence=next_occurrence(start, schedule.recurrence_type, schedule.recurrence_interval),
        created_at=now,
        updated_at=now,
    )
    db.add(follow_up)
    db.flush()
    return follow_up


def complete_schedule(
    db: Session,
    *,
    schedule_id: str,
    now: Optional[datetime] = None,
    notes: Optional[str] = None,
    actual_duration: Optional[int] = None,
    actor_id: Optional[str] = None,
) -> Tuple[models.MaintenanceSchedule, Optional[models.MaintenanceSchedule]]:
    """
    Mark an in-progress schedule completed.

    When it carries a recurrence rule and a next_occurrence, the follow-up
    schedule is created in the same unit: same machine, department, title,
    description, category, priority, assignee and rule; start on the stored
    next_occurrence; same span between start and end. Returns
    (completed, follow_up_or_None).
    """
    now = now or _utcnow()
    schedule = get_schedule(db, schedule_id)
    before = _snapshot(schedule)

    with atomic(db):
        apply_transition(
            db,
            actor_user_id=actor_id,
            entity_type=ENTITY_TYPE,
            entity_id=schedule.id,
            from_state=schedule.status,
            to_state=models.ScheduleStatusEnum.COMPLETED,
            before_obj=before,
            after_obj=dict(_snapshot(schedule), completed_at=now),
        )
        schedule.completed_at = now
        schedule.completion_notes = notes
        schedule.actual_duration = actual_duration
        schedule.status = models.ScheduleStatusEnum.COMPLETED
        schedule.updated_at = now
        db.add(schedule)

        follow_up = None
        if schedule.is_recurring and schedule.next_occurrence is not None:
            follow_up = _emit_next_occurrence(db, schedule, now)
            audit_services.log_event(
                db,
                actor_user_id=actor_id,
                entity_type=ENTITY_TYPE,
                entity_id=follow_up.id,
                action="create",
                after={
                    "status": follow_up.status.value,
                    "start_date": follow_up.start_date.isoformat(),
                    "previous_id": schedule.id,
                },
            )

    if follow_up is not None:
        logger.info(
            "Recurring schedule emitted",
            extra={
                "schedule_id": schedule.id,
                "next_schedule_id": follow_up.id,
                "next_start": follow_up.start_date.isoformat(),
            },
        )
    return schedule, follow_up
