from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from maintdb.apps.faults.models import FaultCategoryEnum, FaultPriorityEnum, FaultStatusEnum
from maintdb.apps.reports import services

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

MILLING = SimpleNamespace(name="Milling")
PACKING = SimpleNamespace(name="Packing")


def _action(personnel_id, created_at, minutes=0, cost=0.0):
    return SimpleNamespace(personnel_id=personnel_id, created_at=created_at, action_time=minutes, cost=cost)


def _fault(
    status,
    *,
    created_at=NOW,
    priority=FaultPriorityEnum.MEDIUM,
    category=FaultCategoryEnum.MECHANICAL,
    machine_id="m1",
    department=MILLING,
    assignments=(),
    actions=(),
):
    return SimpleNamespace(
        status=status,
        priority=priority,
        category=category,
        created_at=created_at,
        machine_id=machine_id,
        department=department,
        assignments=list(assignments),
        actions=list(actions),
    )


@pytest.fixture()
def faults():
    reported = NOW - timedelta(days=3)
    return [
        _fault(
            FaultStatusEnum.OPEN,
            priority=FaultPriorityEnum.URGENT,
            created_at=NOW - timedelta(days=40),
        ),
        _fault(
            FaultStatusEnum.IN_PROGRESS,
            assignments=[SimpleNamespace(assigned_to_id="p1", completed_at=None)],
            actions=[_action("p1", reported + timedelta(hours=1), minutes=30, cost=10.0)],
            created_at=reported,
        ),
        _fault(
            FaultStatusEnum.COMPLETED,
            category=FaultCategoryEnum.ELECTRIC,
            assignments=[SimpleNamespace(assigned_to_id="p1", completed_at=NOW)],
            actions=[
                _action("p1", reported + timedelta(hours=2), minutes=60, cost=100.0),
                _action("p2", reported + timedelta(hours=6), minutes=20, cost=5.0),
            ],
            created_at=reported,
        ),
        _fault(
            FaultStatusEnum.CLOSED,
            machine_id="m2",
            department=PACKING,
            actions=[_action("p2", reported + timedelta(hours=4), minutes=40)],
            created_at=reported,
        ),
    ]


def test_dashboard_counts(faults):
    summary = services.dashboard_summary(faults, user_id="p1")

    assert summary.total == 4
    assert summary.open == 1
    assert summary.in_progress == 1
    assert summary.completed == 1
    assert summary.urgent == 1
    assert summary.my_open_assignments == 1


def test_dashboard_without_user_skips_personal_count(faults):
    assert services.dashboard_summary(faults).my_open_assignments == 0


def test_resolution_hours_uses_latest_action(faults):
    assert services.resolution_hours(faults[2]) == pytest.approx(6.0)
    assert services.resolution_hours(faults[0]) is None


def test_resolution_hours_treats_naive_timestamps_as_utc():
    fault = _fault(
        FaultStatusEnum.COMPLETED,
        created_at=datetime(2024, 6, 1, 8, 0),
        actions=[_action("p1", datetime(2024, 6, 1, 11, 30, tzinfo=timezone.utc))],
    )
    assert services.resolution_hours(fault) == pytest.approx(3.5)


def test_fault_statistics(faults):
    stats = services.fault_statistics(faults, now=NOW)

    assert stats.total_faults == 4
    assert stats.completed_faults == 2
    assert stats.avg_resolution_hours == pytest.approx(5.0)
    assert stats.total_cost == pytest.approx(115.0)
    assert stats.by_status == {"open": 1, "in_progress": 1, "completed": 1, "closed": 1}
    assert stats.by_priority == {"urgent": 1, "medium": 3}
    assert stats.by_category == {"Mechanical": 3, "Electric": 1}
    assert stats.by_department == {"Milling": 3, "Packing": 1}


def test_monthly_trend_covers_six_months_oldest_first(faults):
    trend = services.monthly_trend(faults, end=NOW)

    assert [row.month for row in trend] == [
        "2024-01",
        "2024-02",
        "2024-03",
        "2024-04",
        "2024-05",
        "2024-06",
    ]
    assert [row.count for row in trend] == [0, 0, 0, 0, 1, 3]


def test_empty_statistics():
    stats = services.fault_statistics([], now=NOW)
    assert stats.total_faults == 0
    assert stats.avg_resolution_hours == 0.0
    assert len(stats.monthly_trend) == services.TREND_MONTHS


def test_personnel_performance(faults):
    people = [
        SimpleNamespace(id="p1", name="Ana"),
        SimpleNamespace(id="p2", name="Ben"),
        SimpleNamespace(id="p3", name="Cem"),
    ]
    rows = {row.personnel_id: row for row in services.personnel_performance(people, faults)}

    ana = rows["p1"]
    assert ana.worked_faults == 2
    assert ana.completed_faults == 1
    assert ana.total_minutes == 90
    assert ana.avg_minutes_per_completed == pytest.approx(90.0)
    assert ana.total_cost == pytest.approx(110.0)
    assert ana.efficiency == pytest.approx(50.0)

    ben = rows["p2"]
    assert ben.worked_faults == 2
    assert ben.completed_faults == 2
    assert ben.total_minutes == 60
    assert ben.efficiency == pytest.approx(100.0)

    idle = rows["p3"]
    assert idle.worked_faults == 0
    assert idle.efficiency == 0.0
    assert idle.avg_minutes_per_completed == 0.0


def test_machine_report(faults):
    machines = [
        SimpleNamespace(id="m1", name="Mill 1", department=MILLING),
        SimpleNamespace(id="m2", name="Wrapper", department=PACKING),
        SimpleNamespace(id="m3", name="Spare", department=None),
    ]
    rows = {row.machine_id: row for row in services.machine_report(machines, faults)}

    mill = rows["m1"]
    assert mill.total_faults == 3
    assert mill.open_faults == 2
    assert mill.avg_downtime_minutes == pytest.approx(80.0)
    assert mill.total_cost == pytest.approx(115.0)
    assert mill.department == "Milling"
    assert mill.last_fault_at == NOW - timedelta(days=3)

    wrapper = rows["m2"]
    assert wrapper.total_faults == 1
    assert wrapper.open_faults == 0
    assert wrapper.avg_downtime_minutes == pytest.approx(40.0)

    spare = rows["m3"]
    assert spare.total_faults == 0
    assert spare.last_fault_at is None
    assert spare.department is None
