from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class DashboardSummary(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    completed: int = 0
    urgent: int = 0
    my_open_assignments: int = 0


class MonthlyTrend(BaseModel):
    month: str  # YYYY-MM
    count: int


class FaultStatistics(BaseModel):
    total_faults: int = 0
    completed_faults: int = 0
    avg_resolution_hours: float = 0.0
    total_cost: float = 0.0
    by_priority: Dict[str, int] = {}
    by_status: Dict[str, int] = {}
    by_category: Dict[str, int] = {}
    by_department: Dict[str, int] = {}
    monthly_trend: List[MonthlyTrend] = []


class PersonnelPerformance(BaseModel):
    personnel_id: str
    name: str
    worked_faults: int = 0
    completed_faults: int = 0
    total_minutes: int = 0
    avg_minutes_per_completed: float = 0.0
    total_cost: float = 0.0
    efficiency: float = 0.0


class MachineReport(BaseModel):
    machine_id: str
    name: str
    department: Optional[str] = None
    total_faults: int = 0
    open_faults: int = 0
    avg_downtime_minutes: float = 0.0
    total_cost: float = 0.0
    last_fault_at: Optional[datetime] = None
