# backend/maintdb/apps/reports/services.py
#
# Read-only aggregation over fault reports.
#
# The aggregate functions take already-loaded rows (faults with their
# assignments / actions, personnel, machines) so they can run on any
# filtered slice; `load_faults` is the only function that touches the DB.
# A "resolved" fault is one in status completed or closed.

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session, selectinload

from maintdb.apps.faults.models import FaultPriorityEnum, FaultReport, FaultStatusEnum

from . import schemas

RESOLVED_STATUSES = frozenset({FaultStatusEnum.COMPLETED, FaultStatusEnum.CLOSED})

TREND_MONTHS = 6


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we write is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _fault_cost(fault: FaultReport) -> float:
    return sum(action.cost or 0 for action in fault.actions)


def _fault_minutes(fault: FaultReport) -> int:
    return sum(action.action_time or 0 for action in fault.actions)


def load_faults(
    db: Session,
    *,
    department_id: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
) -> List[FaultReport]:
    q = db.query(FaultReport).options(
        selectinload(FaultReport.assignments),
        selectinload(FaultReport.actions),
        selectinload(FaultReport.department),
    )
    if department_id:
        q = q.filter(FaultReport.department_id == department_id)
    if created_from:
        q = q.filter(FaultReport.created_at >= created_from)
    if created_to:
        q = q.filter(FaultReport.created_at <= created_to)
    return q.order_by(FaultReport.created_at.asc()).all()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def dashboard_summary(faults: Iterable[FaultReport], user_id: Optional[str] = None) -> schemas.DashboardSummary:
    summary = schemas.DashboardSummary()
    for fault in faults:
        summary.total += 1
        if fault.status == FaultStatusEnum.OPEN:
            summary.open += 1
        elif fault.status == FaultStatusEnum.IN_PROGRESS:
            summary.in_progress += 1
        elif fault.status == FaultStatusEnum.COMPLETED:
            summary.completed += 1
        if fault.priority == FaultPriorityEnum.URGENT:
            summary.urgent += 1
        if user_id and any(
            a.assigned_to_id == user_id and a.completed_at is None for a in fault.assignments
        ):
            summary.my_open_assignments += 1
    return summary


# ---------------------------------------------------------------------------
# Fault statistics
# ---------------------------------------------------------------------------


def resolution_hours(fault: FaultReport) -> Optional[float]:
    """Hours from report to the latest logged action, or None without actions."""
    if not fault.actions:
        return None
    created = _as_utc(fault.created_at)
    last_action = max(_as_utc(action.created_at) for action in fault.actions)
    return (last_action - created).total_seconds() / 3600.0


def monthly_trend(
    faults: Sequence[FaultReport],
    *,
    end: Optional[datetime] = None,
    months: int = TREND_MONTHS,
) -> List[schemas.MonthlyTrend]:
    """Fault counts per calendar month, oldest first, ending with `end`'s month."""
    end = _as_utc(end) or datetime.now(timezone.utc)
    counts = Counter(
        _as_utc(fault.created_at).strftime("%Y-%m") for fault in faults if fault.created_at
    )
    first = end.replace(day=1) - relativedelta(months=months - 1)
    labels = [(first + relativedelta(months=offset)).strftime("%Y-%m") for offset in range(months)]
    return [schemas.MonthlyTrend(month=label, count=counts.get(label, 0)) for label in labels]


def fault_statistics(
    faults: Sequence[FaultReport],
    *,
    now: Optional[datetime] = None,
) -> schemas.FaultStatistics:
    resolved = [f for f in faults if f.status in RESOLVED_STATUSES]
    durations = [h for h in (resolution_hours(f) for f in resolved) if h is not None]

    return schemas.FaultStatistics(
        total_faults=len(faults),
        completed_faults=len(resolved),
        avg_resolution_hours=sum(durations) / len(durations) if durations else 0.0,
        total_cost=sum(_fault_cost(f) for f in faults),
        by_priority=dict(Counter(f.priority.value for f in faults)),
        by_status=dict(Counter(f.status.value for f in faults)),
        by_category=dict(Counter(f.category.value for f in faults)),
        by_department=dict(
            Counter(f.department.name if f.department else "unknown" for f in faults)
        ),
        monthly_trend=monthly_trend(faults, end=now),
    )


# ---------------------------------------------------------------------------
# Personnel and machines
# ---------------------------------------------------------------------------


def personnel_performance(personnel, faults: Sequence[FaultReport]) -> List[schemas.PersonnelPerformance]:
    """
    Per person, over the faults they logged actions on: how many were
    resolved, minutes and cost they logged, average minutes per resolved fault
    and efficiency (resolved / worked * 100).
    """
    rows = []
    for person in personnel:
        worked = [f for f in faults if any(a.personnel_id == person.id for a in f.actions)]
        own_actions = [a for f in worked for a in f.actions if a.personnel_id == person.id]
        completed = sum(1 for f in worked if f.status in RESOLVED_STATUSES)
        minutes = sum(a.action_time or 0 for a in own_actions)

        rows.append(
            schemas.PersonnelPerformance(
                personnel_id=person.id,
                name=person.name,
                worked_faults=len(worked),
                completed_faults=completed,
                total_minutes=minutes,
                avg_minutes_per_completed=minutes / completed if completed else 0.0,
                total_cost=sum(a.cost or 0 for a in own_actions),
                efficiency=completed / len(worked) * 100 if worked else 0.0,
            )
        )
    return rows


def machine_report(machines, faults: Sequence[FaultReport]) -> List[schemas.MachineReport]:
    rows = []
    for machine in machines:
        own = [f for f in faults if f.machine_id == machine.id]
        resolved = [f for f in own if f.status in RESOLVED_STATUSES]
        last = max((_as_utc(f.created_at) for f in own), default=None)

        rows.append(
            schemas.MachineReport(
                machine_id=machine.id,
                name=machine.name,
                department=machine.department.name if machine.department else None,
                total_faults=len(own),
                open_faults=len(own) - len(resolved),
                avg_downtime_minutes=(
                    sum(_fault_minutes(f) for f in resolved) / len(resolved) if resolved else 0.0
                ),
                total_cost=sum(_fault_cost(f) for f in own),
                last_fault_at=last,
            )
        )
    return rows
