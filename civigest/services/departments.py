from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.models.records import Department
from civigest.schemas.records import DepartmentIn, DepartmentUpdate
from civigest.security.context import CallerContext
from civigest.security.errors import Conflict
from civigest.security.scope import QueryConstraint
from civigest.services.scoped import get_scoped, resolve_placement, scoped_select, soft_delete

logger = logging.getLogger(__name__)


def _name_taken(db: Session, sub_region_id: int, name: str, exclude_id: int | None = None) -> bool:
    # Soft-deleted rows keep their name.
    stmt = (
        select(Department.id)
        .where(Department.sub_region_id == sub_region_id, Department.name == name)
        .execution_options(skip_tenant_scope=True)
    )
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    return db.execute(stmt).first() is not None


def list_departments(db: Session, scope: QueryConstraint, search: str | None = None) -> list[Department]:
    stmt = scoped_select(Department, scope)
    if search:
        stmt = stmt.where(Department.name.ilike(f"%{search}%"))
    return list(db.scalars(stmt.order_by(Department.id)).all())


def get_department(db: Session, department_id: int, scope: QueryConstraint) -> Department:
    return get_scoped(db, Department, department_id, scope)


def create_department(db: Session, payload: DepartmentIn, caller: CallerContext, scope: QueryConstraint) -> Department:
    region_id, sub_region_id = resolve_placement(db, caller, scope, payload.sub_region_id)

    if _name_taken(db, sub_region_id, payload.name):
        raise Conflict(f"A department named {payload.name!r} already exists in this sub-region")

    department = Department(
        name=payload.name,
        description=payload.description,
        region_id=region_id,
        sub_region_id=sub_region_id,
        created_by=caller.author_account_id,
    )
    db.add(department)
    db.commit()
    db.refresh(department)
    logger.info("Department created id=%s sub_region_id=%s by=%s", department.id, sub_region_id, caller.account_id)
    return department


def update_department(
    db: Session, department_id: int, payload: DepartmentUpdate, scope: QueryConstraint
) -> Department:
    department = get_department(db, department_id, scope)

    changes = payload.model_dump(exclude_unset=True)
    new_name = changes.get("name")
    if new_name and new_name != department.name and _name_taken(db, department.sub_region_id, new_name, department.id):
        raise Conflict(f"A department named {new_name!r} already exists in this sub-region")

    for field, value in changes.items():
        setattr(department, field, value)
    db.commit()
    db.refresh(department)
    return department


def delete_department(db: Session, department_id: int, scope: QueryConstraint) -> None:
    department = get_department(db, department_id, scope)
    soft_delete(db, department)
    logger.info("Department soft-deleted id=%s", department_id)
