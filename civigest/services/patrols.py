from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.models.records import Patrol
from civigest.schemas.records import PatrolIn, PatrolUpdate
from civigest.security.context import CallerContext
from civigest.security.errors import Conflict
from civigest.security.scope import QueryConstraint
from civigest.services.scoped import get_scoped, resolve_placement, scoped_select, soft_delete

logger = logging.getLogger(__name__)


def _plate_taken(db: Session, plate: str, exclude_id: int | None = None) -> bool:
    # Plates are unique system-wide, so this lookup ignores the caller's scope.
    stmt = select(Patrol.id).where(Patrol.plate == plate).execution_options(skip_tenant_scope=True)
    if exclude_id is not None:
        stmt = stmt.where(Patrol.id != exclude_id)
    return db.execute(stmt).first() is not None


def list_patrols(db: Session, scope: QueryConstraint, is_active: bool | None = None) -> list[Patrol]:
    stmt = scoped_select(Patrol, scope)
    if is_active is not None:
        stmt = stmt.where(Patrol.is_active.is_(is_active))
    return list(db.scalars(stmt.order_by(Patrol.id)).all())


def get_patrol(db: Session, patrol_id: int, scope: QueryConstraint) -> Patrol:
    return get_scoped(db, Patrol, patrol_id, scope)


def create_patrol(db: Session, payload: PatrolIn, caller: CallerContext, scope: QueryConstraint) -> Patrol:
    region_id, sub_region_id = resolve_placement(db, caller, scope, payload.sub_region_id)

    if _plate_taken(db, payload.plate):
        raise Conflict(f"Plate {payload.plate!r} is already registered")

    patrol = Patrol(
        plate=payload.plate,
        unit_number=payload.unit_number,
        brand=payload.brand,
        model=payload.model,
        region_id=region_id,
        sub_region_id=sub_region_id,
        created_by=caller.author_account_id,
    )
    db.add(patrol)
    db.commit()
    db.refresh(patrol)
    logger.info("Patrol created id=%s sub_region_id=%s by=%s", patrol.id, sub_region_id, caller.account_id)
    return patrol


def update_patrol(db: Session, patrol_id: int, payload: PatrolUpdate, scope: QueryConstraint) -> Patrol:
    patrol = get_patrol(db, patrol_id, scope)

    changes = payload.model_dump(exclude_unset=True)
    new_plate = changes.get("plate")
    if new_plate and new_plate != patrol.plate and _plate_taken(db, new_plate, patrol.id):
        raise Conflict(f"Plate {new_plate!r} is already registered")

    for field, value in changes.items():
        setattr(patrol, field, value)
    db.commit()
    db.refresh(patrol)
    return patrol


def delete_patrol(db: Session, patrol_id: int, scope: QueryConstraint) -> None:
    patrol = get_patrol(db, patrol_id, scope)
    soft_delete(db, patrol)
    logger.info("Patrol soft-deleted id=%s", patrol_id)
