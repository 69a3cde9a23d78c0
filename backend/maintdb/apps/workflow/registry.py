from __future__ import annotations

from .guards import (
    guard_fault_assignment_closed,
    guard_fault_has_open_assignment,
    guard_schedule_completion,
    guard_schedule_has_assignee,
)

# Every fault state may go back to "open": editing the core fields resets the
# fault and voids its open assignment.
WORKFLOWS = {
    "fault_report": {
        "transitions": {
            "open": {
                "open": [],
                "assigned": [guard_fault_has_open_assignment],
            },
            "assigned": {
                "open": [],
                # reassignment when the conflict policy is "replace"
                "assigned": [guard_fault_has_open_assignment],
                "in_progress": [guard_fault_has_open_assignment],
            },
            "in_progress": {
                "open": [],
                "completed": [guard_fault_assignment_closed],
            },
            "completed": {
                "open": [],
                "closed": [],
            },
            "closed": {
                "open": [],
            },
        }
    },
    "maintenance_schedule": {
        "transitions": {
            "planned": {
                "assigned": [guard_schedule_has_assignee],
                "in_progress": [guard_schedule_has_assignee],
                "postponed": [],
                "cancelled": [],
            },
            "assigned": {
                # assignee removed while editing
                "planned": [],
                "in_progress": [guard_schedule_has_assignee],
                "postponed": [],
                "cancelled": [],
            },
            "in_progress": {
                "completed": [guard_schedule_completion],
                "postponed": [],
                "cancelled": [],
            },
            "postponed": {
                "planned": [],
                "assigned": [guard_schedule_has_assignee],
                "in_progress": [guard_schedule_has_assignee],
                "cancelled": [],
            },
            "completed": {},
            "cancelled": {},
        }
    },
}
