# backend/maintdb/apps/accounts/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maintdb.database import atomic, get_db
from maintdb.security import department_scope, get_current_active_user, require_roles

from . import models, schemas, services

router = APIRouter(prefix="/personnel", tags=["personnel"])


@router.get("/me", response_model=schemas.UserRead)
def read_me(current_user: models.User = Depends(get_current_active_user)):
    return current_user


@router.get("/", response_model=List[schemas.UserRead])
def list_personnel(
    department_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(
        require_roles(models.AccountRole.MANAGER, models.AccountRole.DEPARTMENT_MANAGER)
    ),
):
    """Maintenance personnel roster; department managers only get their own department."""
    return services.list_personnel(db, department_id=department_scope(current_user) or department_id)


# ---------------------------------------------------------------------------
# USER ADMINISTRATION (ADMIN ONLY)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=List[schemas.UserRead])
def list_users(
    role: Optional[models.AccountRole] = None,
    department_id: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(models.AccountRole.ADMIN)),
):
    return services.list_users(db, role=role, department_id=department_id, search=search)


@router.post(
    "/users",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(models.AccountRole.ADMIN)),
):
    with atomic(db, commit=True):
        user = services.create_user(db, payload=payload, actor_user_id=current_user.id)
    return user


@router.patch("/users/{user_id}", response_model=schemas.UserRead)
def update_user(
    user_id: str,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(models.AccountRole.ADMIN)),
):
    user = services.get_user(db, user_id)
    with atomic(db, commit=True):
        user = services.update_user(db, user=user, payload=payload, actor_user_id=current_user.id)
    return user
