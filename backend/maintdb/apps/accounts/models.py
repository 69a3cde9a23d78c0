# backend/maintdb/apps/accounts/models.py

"""
Accounts ORM models.

- AccountRole: portal roles used for router gating.
- Specialization: skill area of maintenance personnel, matched against fault
  categories when offering assignees.
- User: any portal account; maintenance personnel are users with
  role = MAINTENANCE_PERSONNEL.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from ...database import Base, enum_values
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRole(str, enum.Enum):
    """Roles used across the portal."""

    ADMIN = "admin"
    MANAGER = "manager"
    DEPARTMENT_MANAGER = "department_manager"      # scoped to own department
    MAINTENANCE_PERSONNEL = "maintenance_personnel"


class Specialization(str, enum.Enum):
    """Skill area of a maintenance worker. GENERAL is the universal fallback."""

    GENERAL = "General"
    MECHANICAL = "Mechanical"
    ELECTRIC = "Electric"
    IT = "IT"
    PNEUMATIC = "Pneumatic"
    HYDRAULIC = "Hydraulic"
    SOFTWARE = "Software"


class User(Base):
    """
    Portal account.

    Only MAINTENANCE_PERSONNEL rows carry a specialization; for every other
    role the column is kept NULL and the matcher never looks at it.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum", values_callable=enum_values),
        nullable=False,
        default=AccountRole.MAINTENANCE_PERSONNEL,
        index=True,
    )

    department_id = Column(
        String(36),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    specialization = Column(
        Enum(Specialization, name="specialization_enum", values_callable=enum_values),
        nullable=True,
    )

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    department = relationship("Department", back_populates="users")

    @property
    def effective_specialization(self) -> Specialization:
        return self.specialization or Specialization.GENERAL

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role} email={self.email}>"
