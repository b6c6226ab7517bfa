"""
Shared plumbing for tenant-scoped resources.

Every read goes through `scoped_select`, every write target is checked with
`resolve_placement`. Records outside the caller's scope look exactly like
records that do not exist.
"""

from __future__ import annotations

from typing import TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from civigest.db.base import utcnow
from civigest.db.filters import apply_scope
from civigest.security.context import CallerContext
from civigest.security.errors import BadRequest, Forbidden, NotFound
from civigest.security.scope import QueryConstraint
from civigest.services.tenancy import require_active_sub_region

T = TypeVar("T")


def scoped_select(model: type[T], scope: QueryConstraint) -> Select:
    stmt = select(model).where(model.deleted_at.is_(None))
    return apply_scope(stmt, scope)


def get_scoped(db: Session, model: type[T], record_id: int, scope: QueryConstraint) -> T:
    record = db.scalars(scoped_select(model, scope).where(model.id == record_id)).first()
    if record is None:
        raise NotFound(f"{model.__name__} {record_id} not found")
    return record


def resolve_placement(
    db: Session,
    caller: CallerContext,
    scope: QueryConstraint,
    sub_region_id: int | None,
) -> tuple[int, int]:
    """
    Decide where a new record lives: `(region_id, sub_region_id)`.

    Defaults to the caller's home sub-region. The sub-region (and its parent
    region) must be active, and the caller's scope must cover it.
    """

    target = sub_region_id if sub_region_id is not None else caller.sub_region_id
    if target is None:
        raise BadRequest("A sub-region is required to create this record")

    sub_region = require_active_sub_region(db, target)
    if not scope.allows(sub_region.region_id, sub_region.id):
        raise Forbidden("Sub-region is outside your access scope")
    return sub_region.region_id, sub_region.id


def soft_delete(db: Session, record) -> None:
    record.deleted_at = utcnow()
    db.commit()
