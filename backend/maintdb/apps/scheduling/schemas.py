# backend/maintdb/apps/scheduling/schemas.py

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import (
    MaintenanceCategoryEnum,
    RecurrenceTypeEnum,
    SchedulePriorityEnum,
    ScheduleStatusEnum,
)


class ScheduleBase(BaseModel):
    machine_id: str
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    maintenance_type: MaintenanceCategoryEnum = MaintenanceCategoryEnum.PREVENTIVE
    priority: SchedulePriorityEnum = SchedulePriorityEnum.MEDIUM
    start_date: date
    end_date: date
    estimated_duration: Optional[int] = Field(default=None, ge=0, description="Minutes")
    assigned_to_id: Optional[str] = None
    recurrence_type: Optional[RecurrenceTypeEnum] = None
    recurrence_interval: Optional[int] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class ScheduleCreate(ScheduleBase):
    pass


REQUIRED_ON_UPDATE = ("title", "maintenance_type", "priority", "start_date", "end_date")


class ScheduleUpdate(BaseModel):
    """Partial update of planning fields; status moves through /status and /complete."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    maintenance_type: Optional[MaintenanceCategoryEnum] = None
    priority: Optional[SchedulePriorityEnum] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_duration: Optional[int] = Field(default=None, ge=0)
    assigned_to_id: Optional[str] = None
    recurrence_type: Optional[RecurrenceTypeEnum] = None
    recurrence_interval: Optional[int] = None

    @model_validator(mode="after")
    def _reject_cleared_required_fields(self):
        # These columns are NOT NULL: they may be omitted but not cleared.
        cleared = [
            name
            for name in REQUIRED_ON_UPDATE
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class ScheduleStatusChange(BaseModel):
    status: ScheduleStatusEnum
    reason: Optional[str] = None


class ScheduleComplete(BaseModel):
    completion_notes: Optional[str] = None
    actual_duration: Optional[int] = Field(default=None, ge=0, description="Minutes")


class ScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    machine_id: str
    department_id: str
    created_by_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    maintenance_type: MaintenanceCategoryEnum
    priority: SchedulePriorityEnum
    start_date: date
    end_date: date
    estimated_duration: Optional[int] = None
    status: ScheduleStatusEnum
    recurrence_type: Optional[RecurrenceTypeEnum] = None
    recurrence_interval: Optional[int] = None
    next_occurrence: Optional[date] = None
    completion_notes: Optional[str] = None
    actual_duration: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ScheduleCompletionResult(BaseModel):
    completed: ScheduleRead
    next_schedule: Optional[ScheduleRead] = None


class ScheduleFilter(BaseModel):
    """Schedules overlapping [date_from, date_to] match the date range."""

    statuses: Optional[List[ScheduleStatusEnum]] = None
    department_id: Optional[str] = None
    machine_id: Optional[str] = None
    maintenance_type: Optional[MaintenanceCategoryEnum] = None
    assignee_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None


class NextOccurrencePreview(BaseModel):
    start_date: date
    recurrence_type: Optional[RecurrenceTypeEnum] = None
    recurrence_interval: int = 1
    next_occurrence: Optional[date] = None


class CalendarDay(BaseModel):
    day: date
    schedules: List[ScheduleRead] = []


class CalendarMonth(BaseModel):
    year: int
    month: int
    days: List[CalendarDay] = []
