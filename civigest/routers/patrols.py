from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.models.records import Patrol
from civigest.schemas.records import PatrolIn, PatrolOut, PatrolUpdate
from civigest.security.context import CallerContext
from civigest.security.dependencies import get_caller, get_scope
from civigest.security.scope import QueryConstraint
from civigest.services import patrols as service

# Required permissions for these routes live in config/security_config.yaml.
router = APIRouter(prefix="/patrols", tags=["patrols"])


@router.get("", response_model=list[PatrolOut])
def list_patrols(
    is_active: bool | None = None,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> list[Patrol]:
    return service.list_patrols(db, scope, is_active=is_active)


@router.post("", response_model=PatrolOut, status_code=status.HTTP_201_CREATED)
def create_patrol(
    payload: PatrolIn,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
    scope: QueryConstraint = Depends(get_scope),
) -> Patrol:
    return service.create_patrol(db, payload, caller, scope)


@router.get("/{id}", response_model=PatrolOut)
def get_patrol(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> Patrol:
    return service.get_patrol(db, id, scope)


@router.patch("/{id}", response_model=PatrolOut)
def update_patrol(
    id: int,
    payload: PatrolUpdate,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> Patrol:
    return service.update_patrol(db, id, payload, scope)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patrol(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> None:
    service.delete_patrol(db, id, scope)
