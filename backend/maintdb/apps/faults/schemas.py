# backend/maintdb/apps/faults/schemas.py
#
# Schemas for the faults module:
# - FaultReport* : reported malfunctions and their status.
# - Assignment*  : who is working on a fault.
# - MaintenanceAction* : work logged against a fault.
# - FaultFilter  : read-by-filter parameters for listings.

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from maintdb.apps.accounts.models import Specialization

from .models import FaultCategoryEnum, FaultPriorityEnum, FaultStatusEnum


# ---------------------------------------------------------------------------
# Fault reports
# ---------------------------------------------------------------------------


class FaultReportCreate(BaseModel):
    machine_id: str
    category: FaultCategoryEnum
    priority: FaultPriorityEnum = FaultPriorityEnum.MEDIUM
    description: str = Field(min_length=1)
    photo_url: Optional[str] = None


class FaultReportEdit(BaseModel):
    """
    Edit of the core fields. Any edit resets the fault to "open" and voids
    its open assignment.
    """

    category: Optional[FaultCategoryEnum] = None
    priority: Optional[FaultPriorityEnum] = None
    description: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _require_a_change(self):
        if self.category is None and self.priority is None and self.description is None:
            raise ValueError("an edit needs category, priority or description")
        return self


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    fault_report_id: str
    assigned_to_id: str
    assigned_by_id: Optional[str] = None
    assigned_at: datetime
    completed_at: Optional[datetime] = None


class MaintenanceActionCreate(BaseModel):
    description: str = Field(min_length=1)
    spare_parts: Optional[str] = None
    cost: float = Field(default=0.0, ge=0)
    action_time: int = Field(default=0, ge=0, description="Minutes spent")


class MaintenanceActionRead(MaintenanceActionCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    fault_report_id: str
    personnel_id: Optional[str] = None
    created_at: datetime


class FaultReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    machine_id: str
    department_id: str
    reporter_id: Optional[str] = None
    category: FaultCategoryEnum
    priority: FaultPriorityEnum
    description: str
    photo_url: Optional[str] = None
    status: FaultStatusEnum
    created_at: datetime
    updated_at: datetime

    assignments: List[AssignmentRead] = []
    actions: List[MaintenanceActionRead] = []


# ---------------------------------------------------------------------------
# Assignment requests
# ---------------------------------------------------------------------------


class AssignRequest(BaseModel):
    personnel_id: str


class EligiblePerson(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    department_id: Optional[str] = None
    specialization: Optional[Specialization] = None


class EligibleAssignees(BaseModel):
    fault_id: str
    required_specializations: List[Specialization]
    personnel: List[EligiblePerson]


# ---------------------------------------------------------------------------
# Listing filters
# ---------------------------------------------------------------------------


class FaultFilter(BaseModel):
    statuses: Optional[List[FaultStatusEnum]] = None
    department_id: Optional[str] = None
    machine_id: Optional[str] = None
    assignee_id: Optional[str] = None
    category: Optional[FaultCategoryEnum] = None
    priority: Optional[FaultPriorityEnum] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    search: Optional[str] = None
