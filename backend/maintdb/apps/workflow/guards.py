from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _open_assignment_count(db: Session, fault_id: Any) -> int:
    from maintdb.apps.faults import models as fault_models

    return (
        db.query(fault_models.Assignment)
        .filter(
            fault_models.Assignment.fault_report_id == fault_id,
            fault_models.Assignment.completed_at.is_(None),
        )
        .count()
    )


def guard_fault_has_open_assignment(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    fault_id = _get_value(after_obj, "id")
    if not fault_id:
        return [{"field": "id", "reason": "fault identifier required"}]

    open_count = _open_assignment_count(db, fault_id)
    if open_count == 0:
        return [{"field": "assignment", "reason": "an open assignment is required"}]
    if open_count > 1:
        return [{"field": "assignment", "reason": "more than one open assignment"}]
    return []


def guard_fault_assignment_closed(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    fault_id = _get_value(after_obj, "id")
    if not fault_id:
        return [{"field": "id", "reason": "fault identifier required"}]

    missing = []
    if not _get_value(after_obj, "assignment_completed_at"):
        missing.append({"field": "assignment_completed_at", "reason": "assignment completion timestamp required"})
    if _open_assignment_count(db, fault_id) > 0:
        missing.append({"field": "assignment", "reason": "assignment is still open"})
    return missing


def guard_schedule_has_assignee(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(after_obj, "assigned_to_id"):
        return [{"field": "assigned_to_id", "reason": "assignee required"}]
    return []


def guard_schedule_completion(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(after_obj, "completed_at"):
        return [{"field": "completed_at", "reason": "completion timestamp required"}]
    return []
