from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from civigest.db.session import get_db
from civigest.models.records import Department
from civigest.schemas.records import DepartmentIn, DepartmentOut, DepartmentUpdate
from civigest.security.context import CallerContext
from civigest.security.decorators import require_permissions
from civigest.security.dependencies import get_caller, get_scope
from civigest.security.scope import QueryConstraint
from civigest.services import departments as service

# Permissions are declared with decorators here; patrols use the YAML config.
router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=list[DepartmentOut])
@require_permissions("departments:read")
def list_departments(
    search: str | None = None,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> list[Department]:
    return service.list_departments(db, scope, search=search)


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
@require_permissions("departments:create")
def create_department(
    payload: DepartmentIn,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_caller),
    scope: QueryConstraint = Depends(get_scope),
) -> Department:
    return service.create_department(db, payload, caller, scope)


@router.get("/{id}", response_model=DepartmentOut)
@require_permissions("departments:read")
def get_department(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> Department:
    # Out-of-scope departments are reported as not found.
    return service.get_department(db, id, scope)


@router.patch("/{id}", response_model=DepartmentOut)
@require_permissions("departments:update")
def update_department(
    id: int,
    payload: DepartmentUpdate,
    db: Session = Depends(get_db),
    scope: QueryConstraint = Depends(get_scope),
) -> Department:
    return service.update_department(db, id, payload, scope)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
@require_permissions("departments:delete")
def delete_department(id: int, db: Session = Depends(get_db), scope: QueryConstraint = Depends(get_scope)) -> None:
    service.delete_department(db, id, scope)
