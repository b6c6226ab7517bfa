"""
Tenant scope: who may see which region / sub-region.

Two halves:

* `collect_scope_grants` reads the explicit grant tables for an account.
* `scope_filter` turns a `CallerContext` into a `QueryConstraint`, the single
  value every tenant-scoped query is filtered by.

`QueryConstraint` is a closed set of four variants:

    Unconstrained          no tenant restriction
    RegionIn(ids)          region_id IN ids
    SubRegionIn(ids)       sub_region_id IN ids
    Empty                  matches nothing

Anything the evaluator cannot classify becomes `Empty`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import ColumnElement, false, select, true
from sqlalchemy.orm import Session

from civigest.models.security import AccessLevel, AccountRegionAccess, AccountSubRegionAccess
from civigest.models.tenancy import Region, SubRegion
from civigest.security.context import CallerContext

logger = logging.getLogger(__name__)


# ---- Grants -------------------------------------------------------------------------


@dataclass(frozen=True)
class ScopeGrants:
    region_ids: tuple[int, ...] = ()
    sub_region_ids: tuple[int, ...] = ()


def _live_region_clause():
    return (Region.is_active.is_(True), Region.deleted_at.is_(None))


def _live_sub_region_clause():
    return (SubRegion.is_active.is_(True), SubRegion.deleted_at.is_(None), *_live_region_clause())


def collect_scope_grants(db: Session, account_id: int) -> ScopeGrants:
    """
    Read an account's active grants.

    A grant only counts while its tenant is live: a region grant needs the
    region active, a sub-region grant needs the sub-region and its region.
    """

    region_ids = db.scalars(
        select(AccountRegionAccess.region_id)
        .join(Region, Region.id == AccountRegionAccess.region_id)
        .where(
            AccountRegionAccess.account_id == account_id,
            AccountRegionAccess.is_active.is_(True),
            *_live_region_clause(),
        )
    ).all()
    sub_region_ids = db.scalars(
        select(AccountSubRegionAccess.sub_region_id)
        .join(SubRegion, SubRegion.id == AccountSubRegionAccess.sub_region_id)
        .join(Region, Region.id == SubRegion.region_id)
        .where(
            AccountSubRegionAccess.account_id == account_id,
            AccountSubRegionAccess.is_active.is_(True),
            *_live_sub_region_clause(),
        )
    ).all()
    return ScopeGrants(region_ids=tuple(sorted(set(region_ids))), sub_region_ids=tuple(sorted(set(sub_region_ids))))


def live_scope_grants(db: Session, region_ids: Iterable[int], sub_region_ids: Iterable[int]) -> ScopeGrants:
    """Drop grant ids (e.g. from a credential snapshot) whose tenant is no longer live."""

    region_ids, sub_region_ids = set(region_ids), set(sub_region_ids)
    live_regions: list[int] = []
    live_sub_regions: list[int] = []
    if region_ids:
        live_regions = db.scalars(select(Region.id).where(Region.id.in_(sorted(region_ids)), *_live_region_clause())).all()
    if sub_region_ids:
        live_sub_regions = db.scalars(
            select(SubRegion.id)
            .join(Region, Region.id == SubRegion.region_id)
            .where(SubRegion.id.in_(sorted(sub_region_ids)), *_live_sub_region_clause())
        ).all()
    return ScopeGrants(region_ids=tuple(sorted(live_regions)), sub_region_ids=tuple(sorted(live_sub_regions)))


# ---- Constraint variants ------------------------------------------------------------


class QueryConstraint:
    """Base of the four scope variants."""

    def criteria(self, model) -> ColumnElement[bool]:
        raise NotImplementedError

    def allows(self, region_id: int | None, sub_region_id: int | None) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Unconstrained(QueryConstraint):
    def criteria(self, model) -> ColumnElement[bool]:
        return true()

    def allows(self, region_id: int | None, sub_region_id: int | None) -> bool:
        return True


@dataclass(frozen=True)
class RegionIn(QueryConstraint):
    ids: frozenset[int]

    def criteria(self, model) -> ColumnElement[bool]:
        return model.region_id.in_(sorted(self.ids))

    def allows(self, region_id: int | None, sub_region_id: int | None) -> bool:
        return region_id is not None and region_id in self.ids


@dataclass(frozen=True)
class SubRegionIn(QueryConstraint):
    ids: frozenset[int]

    def criteria(self, model) -> ColumnElement[bool]:
        return model.sub_region_id.in_(sorted(self.ids))

    def allows(self, region_id: int | None, sub_region_id: int | None) -> bool:
        return sub_region_id is not None and sub_region_id in self.ids


@dataclass(frozen=True)
class Empty(QueryConstraint):
    def criteria(self, model) -> ColumnElement[bool]:
        return false()

    def allows(self, region_id: int | None, sub_region_id: int | None) -> bool:
        return False


UNCONSTRAINED = Unconstrained()
EMPTY = Empty()


def _ids(home: int | None, granted: Iterable[int]) -> frozenset[int]:
    ids = set(granted)
    if home is not None:
        ids.add(home)
    return frozenset(ids)


# ---- Evaluator ----------------------------------------------------------------------


def scope_filter(caller: CallerContext) -> QueryConstraint:
    """
    Decide the tenant filter for a caller.

    Precedence:
    1. unrestricted capability -> Unconstrained
    2. GLOBAL                  -> Unconstrained
    3. REGION                  -> RegionIn(home + granted regions)
    4. SUB_REGION              -> SubRegionIn(home + granted sub-regions)
    5. anything else           -> Empty
    """

    if caller.unrestricted:
        return UNCONSTRAINED

    level = caller.access_level
    if level is AccessLevel.GLOBAL:
        return UNCONSTRAINED

    if level is AccessLevel.REGION:
        return RegionIn(_ids(caller.region_id, caller.granted_region_ids))

    if level is AccessLevel.SUB_REGION:
        ids = _ids(caller.sub_region_id, caller.granted_sub_region_ids)
        if not ids:
            logger.warning("SUB_REGION caller without any sub-region account_id=%s", caller.account_id)
            return EMPTY
        return SubRegionIn(ids)

    logger.warning("Unrecognized access level account_id=%s access_level=%r", caller.account_id, level)
    return EMPTY
