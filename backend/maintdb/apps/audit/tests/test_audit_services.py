from __future__ import annotations

from datetime import datetime, timezone

from maintdb.apps.audit import services as audit_services


def test_log_event_writes_record(db_session):
    event = audit_services.log_event(
        db_session,
        actor_user_id=None,
        entity_type="fault_report",
        entity_id="fault-1",
        action="create",
        after={"status": "open"},
        metadata={"module": "faults"},
    )

    db_session.commit()
    assert event is not None
    assert event.entity_type == "fault_report"
    assert event.metadata_json == {"module": "faults"}


def test_list_audit_events_filters_and_orders_newest_first(db_session):
    for day, entity_id in ((1, "fault-1"), (3, "fault-1"), (2, "fault-2")):
        audit_services.log_event(
            db_session,
            actor_user_id=None,
            entity_type="fault_report",
            entity_id=entity_id,
            action="transition",
            occurred_at=datetime(2024, 5, day, tzinfo=timezone.utc),
        )
    audit_services.log_event(
        db_session,
        actor_user_id=None,
        entity_type="maintenance_schedule",
        entity_id="sched-1",
        action="create",
    )
    db_session.commit()

    events = audit_services.list_audit_events(db_session, entity_type="fault_report", entity_id="fault-1")
    assert [e.occurred_at.day for e in events] == [3, 1]

    windowed = audit_services.list_audit_events(
        db_session,
        entity_type="fault_report",
        start=datetime(2024, 5, 2, tzinfo=timezone.utc),
        end=datetime(2024, 5, 2, 23, 59, tzinfo=timezone.utc),
    )
    assert [e.entity_id for e in windowed] == ["fault-2"]
