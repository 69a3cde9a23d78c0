from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from maintdb.apps.accounts import models as account_models
from maintdb.apps.audit import models as audit_models
from maintdb.apps.faults import models as fault_models
from maintdb.apps.faults import schemas as fault_schemas
from maintdb.apps.faults import services as fault_services
from maintdb.apps.plant import models as plant_models
from maintdb.database import atomic
from maintdb.errors import (
    AssignmentConflict,
    IneligibleAssignee,
    InvalidTransition,
    NotFound,
    StorageFailure,
)

NOW = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


def _create_department(db, name: str = "Press Shop") -> plant_models.Department:
    dept = plant_models.Department(name=name)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


def _create_machine(db, dept_id: str, name: str = "Press 1") -> plant_models.Machine:
    machine = plant_models.Machine(name=name, department_id=dept_id)
    db.add(machine)
    db.commit()
    db.refresh(machine)
    return machine


def _create_user(
    db,
    name: str,
    role: account_models.AccountRole = account_models.AccountRole.MAINTENANCE_PERSONNEL,
    specialization=None,
    department_id=None,
    is_active: bool = True,
) -> account_models.User:
    user = account_models.User(
        email=f"{name.lower()}@example.com",
        name=name,
        role=role,
        specialization=specialization,
        department_id=department_id,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _setup(db):
    dept = _create_department(db)
    machine = _create_machine(db, dept.id)
    manager = _create_user(db, "Manager", role=account_models.AccountRole.MANAGER)
    mechanic = _create_user(db, "Mechanic", specialization=account_models.Specialization.MECHANICAL)
    electrician = _create_user(db, "Electrician", specialization=account_models.Specialization.ELECTRIC)
    return dept, machine, manager, mechanic, electrician


def _report(db, machine, reporter, category=fault_models.FaultCategoryEnum.MECHANICAL):
    fault = fault_services.create_fault(
        db,
        payload=fault_schemas.FaultReportCreate(
            machine_id=machine.id,
            category=category,
            priority=fault_models.FaultPriorityEnum.HIGH,
            description="Hydraulic press leaks oil",
        ),
        reporter=reporter,
        now=NOW,
    )
    db.commit()
    return fault


def _assign(db, fault, person, manager, **kwargs):
    assignment = fault_services.assign_fault(
        db,
        fault_id=fault.id,
        personnel_id=person.id,
        assigner_id=manager.id,
        now=NOW,
        **kwargs,
    )
    db.commit()
    return assignment


def _open_count(db, fault_id: str) -> int:
    return len(fault_services.open_assignments(db, fault_id))


def _work_to_completion(db, fault, person, manager):
    _assign(db, fault, person, manager)
    fault_services.start_work(db, fault_id=fault.id, actor_id=person.id, now=NOW)
    db.commit()
    fault_services.complete_fault(db, fault_id=fault.id, actor_id=person.id, now=NOW + timedelta(hours=2))
    db.commit()


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def test_reported_fault_is_open_and_takes_machine_department(db_session):
    dept, machine, manager, _, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert fault.department_id == dept.id
    assert fault.reporter_id == manager.id


def test_report_against_missing_machine_is_not_found(db_session):
    _, _, manager, _, _ = _setup(db_session)
    with pytest.raises(NotFound):
        fault_services.create_fault(
            db_session,
            payload=fault_schemas.FaultReportCreate(
                machine_id="missing",
                category=fault_models.FaultCategoryEnum.IT,
                description="Screen is dark",
            ),
            reporter=manager,
        )


# ---------------------------------------------------------------------------
# Assignment ledger
# ---------------------------------------------------------------------------


def test_assign_moves_fault_to_assigned_with_one_open_assignment(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    assignment = _assign(db_session, fault, mechanic, manager)

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.ASSIGNED
    assert assignment.assigned_to_id == mechanic.id
    assert assignment.assigned_by_id == manager.id
    assert assignment.completed_at is None
    assert _open_count(db_session, fault.id) == 1

    transitions = (
        db_session.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == fault.id,
            audit_models.AuditEvent.action == "transition",
        )
        .all()
    )
    assert len(transitions) == 1
    assert transitions[0].before["status"] == "open"
    assert transitions[0].after["status"] == "assigned"


def test_electric_personnel_cannot_take_mechanical_fault(db_session):
    _, machine, manager, _, electrician = _setup(db_session)
    fault = _report(db_session, machine, manager)

    with pytest.raises(IneligibleAssignee):
        fault_services.assign_fault(
            db_session, fault_id=fault.id, personnel_id=electrician.id, assigner_id=manager.id
        )

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert _open_count(db_session, fault.id) == 0


def test_only_active_maintenance_personnel_can_be_assigned(db_session):
    dept, machine, manager, _, _ = _setup(db_session)
    retired = _create_user(
        db_session,
        "Retired",
        specialization=account_models.Specialization.GENERAL,
        is_active=False,
    )
    fault = _report(db_session, machine, manager)

    for person in (manager, retired):
        with pytest.raises(IneligibleAssignee):
            fault_services.assign_fault(
                db_session, fault_id=fault.id, personnel_id=person.id, assigner_id=manager.id
            )


def test_general_personnel_take_any_category(db_session):
    _, machine, manager, _, _ = _setup(db_session)
    generalist = _create_user(db_session, "Generalist", specialization=account_models.Specialization.GENERAL)
    fault = _report(db_session, machine, manager, category=fault_models.FaultCategoryEnum.SOFTWARE)

    _assign(db_session, fault, generalist, manager)
    assert _open_count(db_session, fault.id) == 1


def test_second_assignment_is_rejected_by_default(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    other = _create_user(db_session, "Fitter", specialization=account_models.Specialization.MECHANICAL)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    with pytest.raises(AssignmentConflict):
        fault_services.assign_fault(
            db_session, fault_id=fault.id, personnel_id=other.id, assigner_id=manager.id, policy="reject"
        )

    open_rows = fault_services.open_assignments(db_session, fault.id)
    assert [row.assigned_to_id for row in open_rows] == [mechanic.id]


def test_replace_policy_swaps_the_open_assignment(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    other = _create_user(db_session, "Fitter", specialization=account_models.Specialization.MECHANICAL)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    _assign(db_session, fault, other, manager, policy="replace")

    db_session.refresh(fault)
    open_rows = fault_services.open_assignments(db_session, fault.id)
    assert [row.assigned_to_id for row in open_rows] == [other.id]
    assert fault.status == fault_models.FaultStatusEnum.ASSIGNED


def test_storage_index_blocks_two_open_assignments(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    with pytest.raises(AssignmentConflict):
        with atomic(db_session):
            db_session.add(
                fault_models.Assignment(
                    fault_report_id=fault.id,
                    assigned_to_id=mechanic.id,
                    assigned_at=NOW,
                )
            )

    assert _open_count(db_session, fault.id) == 1


def test_assign_unknown_fault_or_person_is_not_found(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    with pytest.raises(NotFound):
        fault_services.assign_fault(db_session, fault_id="nope", personnel_id=mechanic.id, assigner_id=None)
    with pytest.raises(NotFound):
        fault_services.assign_fault(db_session, fault_id=fault.id, personnel_id="nobody", assigner_id=None)


# ---------------------------------------------------------------------------
# Work and completion
# ---------------------------------------------------------------------------


def test_full_lifecycle_closes_assignment_on_completion(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    assignment = _assign(db_session, fault, mechanic, manager)

    fault_services.start_work(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW)
    db_session.commit()
    action = fault_services.record_action(
        db_session,
        fault_id=fault.id,
        actor_id=mechanic.id,
        payload=fault_schemas.MaintenanceActionCreate(
            description="Replaced seal", spare_parts="Seal kit", cost=120.5, action_time=45
        ),
        now=NOW + timedelta(hours=1),
    )
    db_session.commit()
    fault_services.complete_fault(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW + timedelta(hours=2))
    db_session.commit()

    db_session.refresh(fault)
    db_session.refresh(assignment)
    assert fault.status == fault_models.FaultStatusEnum.COMPLETED
    assert assignment.completed_at is not None
    assert _open_count(db_session, fault.id) == 0
    assert action.personnel_id == mechanic.id
    assert [a.id for a in fault.actions] == [action.id]


def test_only_the_assignee_can_start_work(db_session):
    _, machine, manager, mechanic, electrician = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    with pytest.raises(InvalidTransition):
        fault_services.start_work(db_session, fault_id=fault.id, actor_id=electrician.id)


def test_start_work_needs_an_assignment(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    with pytest.raises(InvalidTransition):
        fault_services.start_work(db_session, fault_id=fault.id, actor_id=mechanic.id)

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN


def test_complete_requires_work_in_progress(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    with pytest.raises(InvalidTransition):
        fault_services.complete_fault(db_session, fault_id=fault.id, now=NOW)

    assert _open_count(db_session, fault.id) == 1


def test_complete_unassigned_fault_is_rejected(db_session):
    _, machine, manager, _, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    with pytest.raises(InvalidTransition):
        fault_services.complete_fault(db_session, fault_id=fault.id, now=NOW)

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert fault.assignments == []


def test_complete_after_edit_voided_the_assignment_is_rejected(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)
    fault_services.start_work(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW)
    db_session.commit()

    fault_services.edit_fault(
        db_session,
        fault_id=fault.id,
        payload=fault_schemas.FaultReportEdit(description="Leak is on the return line"),
        actor_id=manager.id,
    )
    db_session.commit()

    with pytest.raises(InvalidTransition):
        fault_services.complete_fault(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW)

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert _open_count(db_session, fault.id) == 0


def test_complete_in_progress_fault_without_open_assignment_is_rejected(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    assignment = _assign(db_session, fault, mechanic, manager)
    fault_services.start_work(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW)
    db_session.commit()
    db_session.delete(assignment)
    db_session.commit()

    with pytest.raises(InvalidTransition) as excinfo:
        fault_services.complete_fault(db_session, fault_id=fault.id, now=NOW)
    assert excinfo.value.detail[0]["field"] == "assignment"

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.IN_PROGRESS


def test_actions_only_while_in_progress(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    with pytest.raises(InvalidTransition):
        fault_services.record_action(
            db_session,
            fault_id=fault.id,
            actor_id=mechanic.id,
            payload=fault_schemas.MaintenanceActionCreate(description="Looked at it"),
        )


def test_failed_completion_leaves_fault_in_progress(db_session, monkeypatch):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)
    fault_services.start_work(db_session, fault_id=fault.id, actor_id=mechanic.id, now=NOW)
    db_session.commit()

    def _broken_flush(*args, **kwargs):
        raise OperationalError("UPDATE assignments", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "flush", _broken_flush)
    with pytest.raises(StorageFailure):
        fault_services.complete_fault(db_session, fault_id=fault.id, now=NOW)
    monkeypatch.undo()

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.IN_PROGRESS
    open_rows = fault_services.open_assignments(db_session, fault.id)
    assert len(open_rows) == 1
    assert open_rows[0].completed_at is None


def test_close_only_after_completion(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)

    with pytest.raises(InvalidTransition):
        fault_services.close_fault(db_session, fault_id=fault.id, actor_id=manager.id)

    _work_to_completion(db_session, fault, mechanic, manager)
    fault_services.close_fault(db_session, fault_id=fault.id, actor_id=manager.id)
    db_session.commit()

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.CLOSED


# ---------------------------------------------------------------------------
# Edit with reset
# ---------------------------------------------------------------------------


def test_editing_assigned_fault_resets_to_open_and_voids_assignment(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    fault_services.edit_fault(
        db_session,
        fault_id=fault.id,
        payload=fault_schemas.FaultReportEdit(category=fault_models.FaultCategoryEnum.ELECTRIC),
        actor_id=manager.id,
        now=NOW + timedelta(minutes=5),
    )
    db_session.commit()

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert fault.category == fault_models.FaultCategoryEnum.ELECTRIC
    assert _open_count(db_session, fault.id) == 0
    assert fault.assignments == []


def test_edit_keeps_completed_assignment_history(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _work_to_completion(db_session, fault, mechanic, manager)

    fault_services.edit_fault(
        db_session,
        fault_id=fault.id,
        payload=fault_schemas.FaultReportEdit(priority=fault_models.FaultPriorityEnum.URGENT),
        actor_id=manager.id,
    )
    db_session.commit()

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.OPEN
    assert fault.priority == fault_models.FaultPriorityEnum.URGENT
    assert len(fault.assignments) == 1
    assert fault.assignments[0].completed_at is not None


def test_edit_must_name_a_field():
    with pytest.raises(ValueError):
        fault_schemas.FaultReportEdit()
    with pytest.raises(ValueError):
        fault_schemas.FaultReportEdit.model_validate({"category": None, "priority": None})


def test_empty_edit_leaves_assignment_in_place(db_session):
    _, machine, manager, mechanic, _ = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    fault_services.edit_fault(
        db_session,
        fault_id=fault.id,
        payload=fault_schemas.FaultReportEdit.model_construct(),
        actor_id=manager.id,
    )
    db_session.commit()

    db_session.refresh(fault)
    assert fault.status == fault_models.FaultStatusEnum.ASSIGNED
    assert _open_count(db_session, fault.id) == 1


def test_reassign_after_edit(db_session):
    _, machine, manager, mechanic, electrician = _setup(db_session)
    fault = _report(db_session, machine, manager)
    _assign(db_session, fault, mechanic, manager)

    fault_services.edit_fault(
        db_session,
        fault_id=fault.id,
        payload=fault_schemas.FaultReportEdit(category=fault_models.FaultCategoryEnum.ELECTRIC),
    )
    db_session.commit()
    _assign(db_session, fault, electrician, manager)

    open_rows = fault_services.open_assignments(db_session, fault.id)
    assert [row.assigned_to_id for row in open_rows] == [electrician.id]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def test_list_faults_filters(db_session):
    dept, machine, manager, mechanic, _ = _setup(db_session)
    other_dept = _create_department(db_session, "Paint Shop")
    other_machine = _create_machine(db_session, other_dept.id, "Sprayer")

    first = _report(db_session, machine, manager)
    _report(db_session, other_machine, manager, category=fault_models.FaultCategoryEnum.ELECTRIC)
    _assign(db_session, first, mechanic, manager)

    by_dept = fault_services.list_faults(db_session, fault_schemas.FaultFilter(department_id=dept.id))
    assert [f.id for f in by_dept] == [first.id]

    mine = fault_services.list_faults(db_session, fault_schemas.FaultFilter(assignee_id=mechanic.id))
    assert [f.id for f in mine] == [first.id]

    open_only = fault_services.list_faults(
        db_session, fault_schemas.FaultFilter(statuses=[fault_models.FaultStatusEnum.OPEN])
    )
    assert [f.department_id for f in open_only] == [other_dept.id]

    assert len(fault_services.list_faults(db_session, fault_schemas.FaultFilter(search="oil"))) == 2


def test_eligible_assignees_from_roster(db_session):
    dept, machine, manager, mechanic, electrician = _setup(db_session)
    fault = _report(db_session, machine, manager, category=fault_models.FaultCategoryEnum.HYDRAULIC)

    names = [p.name for p in fault_services.eligible_assignees(db_session, fault=fault)]
    assert names == ["Mechanic"]
