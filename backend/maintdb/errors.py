"""
Error kinds raised by the maintdb core.

Every error carries a machine-readable `code` and a `detail` list of
`{"field": ..., "reason": ...}` dicts, the same shape the workflow engine has
always returned, so routers can hand them to clients unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

ErrorDetail = List[Dict[str, str]]


@dataclass(eq=False)
class MaintError(Exception):
    detail: ErrorDetail = field(default_factory=list)
    code: str = "error"

    def __str__(self) -> str:
        reasons = "; ".join(f"{item.get('field')}: {item.get('reason')}" for item in self.detail)
        return f"{self.code}: {reasons}" if reasons else self.code


@dataclass(eq=False)
class IneligibleAssignee(MaintError):
    """Assignee's specialization is not in the fault category's required set."""

    code: str = "ineligible_assignee"


@dataclass(eq=False)
class AssignmentConflict(MaintError):
    """The fault already has an open assignment."""

    code: str = "assignment_conflict"


@dataclass(eq=False)
class InvalidTransition(MaintError):
    code: str = "invalid_transition"


@dataclass(eq=False)
class InvalidRecurrence(MaintError):
    code: str = "invalid_recurrence"


@dataclass(eq=False)
class InvalidSchedule(MaintError):
    """Schedule fields that do not fit together, e.g. an end date before the start."""

    code: str = "invalid_schedule"


@dataclass(eq=False)
class NotFound(MaintError):
    code: str = "not_found"


@dataclass(eq=False)
class StorageFailure(MaintError):
    """A write did not go through; the session has been rolled back."""

    code: str = "storage_failure"


def not_found(entity: str, entity_id: object) -> NotFound:
    return NotFound(detail=[{"field": entity, "reason": f"{entity} {entity_id} not found"}])
