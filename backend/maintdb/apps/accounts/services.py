from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from maintdb.apps.audit import services as audit_services
from maintdb.database import atomic
from maintdb.errors import not_found

from . import models, schemas


def _specialization_for_role(
    role: models.AccountRole,
    specialization: Optional[models.Specialization],
) -> Optional[models.Specialization]:
    # Only maintenance personnel carry a specialization.
    if role != models.AccountRole.MAINTENANCE_PERSONNEL:
        return None
    return specialization or models.Specialization.GENERAL


def get_user(db: Session, user_id: str) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise not_found("user", user_id)
    return user


def create_user(
    db: Session,
    *,
    payload: schemas.UserCreate,
    actor_user_id: Optional[str] = None,
) -> models.User:
    with atomic(db):
        user = models.User(
            email=payload.email.strip().lower(),
            name=payload.name.strip(),
            role=payload.role,
            department_id=payload.department_id,
            specialization=_specialization_for_role(payload.role, payload.specialization),
            is_active=True,
        )
        db.add(user)
        db.flush()
        audit_services.log_event(
            db,
            actor_user_id=actor_user_id,
            entity_type="user",
            entity_id=user.id,
            action="create",
            after={"role": user.role.value, "department_id": user.department_id},
        )
    return user


def update_user(
    db: Session,
    *,
    user: models.User,
    payload: schemas.UserUpdate,
    actor_user_id: Optional[str] = None,
) -> models.User:
    data = payload.model_dump(exclude_unset=True)
    before = {"role": user.role.value, "specialization": user.specialization.value if user.specialization else None}
    with atomic(db):
        for field, value in data.items():
            setattr(user, field, value)
        user.specialization = _specialization_for_role(
            user.role, data.get("specialization", user.specialization)
        )
        db.add(user)
        audit_services.log_event(
            db,
            actor_user_id=actor_user_id,
            entity_type="user",
            entity_id=user.id,
            action="update",
            before=before,
            after={"role": user.role.value, "specialization": user.specialization.value if user.specialization else None},
        )
    return user


def list_users(
    db: Session,
    *,
    role: Optional[models.AccountRole] = None,
    department_id: Optional[str] = None,
    search: Optional[str] = None,
) -> List[models.User]:
    q = db.query(models.User)
    if role:
        q = q.filter(models.User.role == role)
    if department_id:
        q = q.filter(models.User.department_id == department_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(models.User.name.ilike(pattern) | models.User.email.ilike(pattern))
    return q.order_by(models.User.name.asc()).all()


def list_personnel(
    db: Session,
    *,
    department_id: Optional[str] = None,
) -> List[models.User]:
    """Active maintenance personnel, optionally limited to one department."""
    q = db.query(models.User).filter(
        models.User.role == models.AccountRole.MAINTENANCE_PERSONNEL,
        models.User.is_active.is_(True),
    )
    if department_id:
        q = q.filter(models.User.department_id == department_id)
    return q.order_by(models.User.name.asc()).all()
