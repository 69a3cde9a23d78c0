from __future__ import annotations

import pytest
from fastapi import HTTPException

from maintdb.apps.accounts import models as account_models
from maintdb.apps.faults import models as fault_models
from maintdb.apps.faults import router as faults_router
from maintdb.apps.faults import schemas as fault_schemas
from maintdb.apps.faults import services as fault_services
from maintdb.apps.plant import models as plant_models

Role = account_models.AccountRole


def _setup(db):
    milling = plant_models.Department(name="Milling")
    packing = plant_models.Department(name="Packing")
    db.add_all([milling, packing])
    db.commit()

    lathe = plant_models.Machine(name="Lathe", department_id=milling.id)
    wrapper = plant_models.Machine(name="Wrapper", department_id=packing.id)
    manager = account_models.User(email="boss@example.com", name="Boss", role=Role.MANAGER)
    lead = account_models.User(
        email="lead@example.com",
        name="Lead",
        role=Role.DEPARTMENT_MANAGER,
        department_id=packing.id,
    )
    packer = account_models.User(
        email="packer@example.com",
        name="Packer",
        role=Role.MAINTENANCE_PERSONNEL,
        specialization=account_models.Specialization.MECHANICAL,
        department_id=packing.id,
    )
    db.add_all([lathe, wrapper, manager, lead, packer])
    db.commit()

    faults = {}
    for machine in (lathe, wrapper):
        faults[machine.name] = fault_services.create_fault(
            db,
            payload=fault_schemas.FaultReportCreate(
                machine_id=machine.id,
                category=fault_models.FaultCategoryEnum.MECHANICAL,
                description=f"{machine.name} jammed",
            ),
            reporter=manager,
        )
        db.commit()
    return lead, packer, faults


def _list(db, user, **filters):
    params = dict(
        status_in=None,
        department_id=None,
        machine_id=None,
        assignee_id=None,
        category=None,
        priority=None,
        created_from=None,
        created_to=None,
        search=None,
    )
    params.update(filters)
    return faults_router.list_faults(db=db, current_user=user, **params)


def test_department_manager_cannot_read_other_departments_fault(db_session):
    lead, _, faults = _setup(db_session)

    with pytest.raises(HTTPException) as excinfo:
        faults_router.get_fault(faults["Lathe"].id, db=db_session, current_user=lead)
    assert excinfo.value.status_code == 403

    assert faults_router.get_fault(faults["Wrapper"].id, db=db_session, current_user=lead).id == faults["Wrapper"].id


def test_department_manager_listing_ignores_requested_department(db_session):
    lead, _, faults = _setup(db_session)

    listed = _list(db_session, lead, department_id=faults["Lathe"].department_id)
    assert [f.id for f in listed] == [faults["Wrapper"].id]


def test_personnel_only_list_their_assignments(db_session):
    lead, packer, faults = _setup(db_session)
    assert _list(db_session, packer) == []

    fault_services.assign_fault(
        db_session,
        fault_id=faults["Wrapper"].id,
        personnel_id=packer.id,
        assigner_id=lead.id,
    )
    db_session.commit()

    assert [f.id for f in _list(db_session, packer, assignee_id="someone-else")] == [faults["Wrapper"].id]


def test_department_manager_cannot_assign_across_departments(db_session):
    lead, packer, faults = _setup(db_session)

    with pytest.raises(HTTPException) as excinfo:
        faults_router.assign_fault(
            faults["Lathe"].id,
            fault_schemas.AssignRequest(personnel_id=packer.id),
            db=db_session,
            current_user=lead,
        )
    assert excinfo.value.status_code == 403
    assert fault_services.open_assignments(db_session, faults["Lathe"].id) == []
