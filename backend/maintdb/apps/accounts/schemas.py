from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import AccountRole, Specialization


class UserCreate(BaseModel):
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    role: AccountRole = AccountRole.MAINTENANCE_PERSONNEL
    department_id: Optional[str] = None
    specialization: Optional[Specialization] = Specialization.GENERAL


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[AccountRole] = None
    department_id: Optional[str] = None
    specialization: Optional[Specialization] = None
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: AccountRole
    department_id: Optional[str] = None
    specialization: Optional[Specialization] = None
    is_active: bool
    created_at: datetime
