from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class DepartmentRead(DepartmentCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime


class MachineCreate(BaseModel):
    name: str = Field(min_length=1)
    department_id: str


class MachineRead(MachineCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
