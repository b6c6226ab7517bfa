from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from civigest.models.tenancy import Region, SubRegion
from civigest.security.errors import BadRequest


def require_active_region(db: Session, region_id: int) -> Region:
    region = db.get(Region, region_id)
    if region is None or not region.is_live:
        raise BadRequest("Region not found or inactive")
    return region


def require_active_sub_region(db: Session, sub_region_id: int, region_id: int | None = None) -> SubRegion:
    """
    Load a usable sub-region.

    Usable means: it exists, it is active and not deleted, its parent region is
    active and not deleted, and (when `region_id` is given) it belongs to that
    region.
    """

    stmt = select(SubRegion).where(SubRegion.id == sub_region_id).options(selectinload(SubRegion.region))
    sub_region = db.scalars(stmt).first()
    if sub_region is None or (region_id is not None and sub_region.region_id != region_id):
        raise BadRequest("Sub-region not found or does not belong to the given region")
    if not sub_region.is_live:
        raise BadRequest("Sub-region or its region is inactive")
    return sub_region
