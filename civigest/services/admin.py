"""
Administrative operations on the access model itself.

Reached only through `/admin` routes, which require the unrestricted
capability. Nothing here is ever hard-deleted: grants, links and
permissions are switched off instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from civigest.db.base import utcnow
from civigest.models.agents import Agent, AgentRole
from civigest.models.security import (
    Account,
    AccountRegionAccess,
    AccountRole,
    AccountSubRegionAccess,
    Permission,
    Role,
    RolePermission,
)
from civigest.models.tenancy import Region
from civigest.security.errors import BadRequest, Conflict, NotFound
from civigest.security.permissions import format_permission
from civigest.services.tenancy import require_active_region, require_active_sub_region

logger = logging.getLogger(__name__)


def _get_or_404(db: Session, model, record_id: int):
    record = db.get(model, record_id)
    if record is None:
        raise NotFound(f"{model.__name__} {record_id} not found")
    return record


# ---- Accounts ------------------------------------------------------------------------


def list_accounts(db: Session) -> list[Account]:
    stmt = (
        select(Account)
        .where(Account.deleted_at.is_(None))
        .options(selectinload(Account.role_assignments).selectinload(AccountRole.role))
        .order_by(Account.id)
    )
    return list(db.scalars(stmt).all())


def set_account_active(db: Session, account_id: int, active: bool) -> Account:
    account = _get_or_404(db, Account, account_id)
    account.is_active = active
    db.commit()
    logger.info("Account active=%s account_id=%s", active, account_id)
    return account


def soft_delete_account(db: Session, account_id: int) -> None:
    account = _get_or_404(db, Account, account_id)
    account.is_active = False
    account.deleted_at = utcnow()
    db.commit()
    logger.info("Account soft-deleted account_id=%s", account_id)


def assign_role(db: Session, account_id: int, role_id: int, assigned_by: int) -> AccountRole:
    _get_or_404(db, Account, account_id)
    role = _get_or_404(db, Role, role_id)
    if not role.is_active:
        raise BadRequest(f"Role {role.name!r} is inactive")

    link = db.scalars(
        select(AccountRole).where(AccountRole.account_id == account_id, AccountRole.role_id == role_id)
    ).first()
    if link is None:
        link = AccountRole(account_id=account_id, role_id=role_id, assigned_by=assigned_by)
        db.add(link)
    elif link.is_active:
        raise Conflict(f"Role {role.name!r} already assigned")
    link.is_active = True
    link.assigned_by = assigned_by
    db.commit()
    return link


def revoke_role(db: Session, account_id: int, role_id: int) -> None:
    link = db.scalars(
        select(AccountRole).where(AccountRole.account_id == account_id, AccountRole.role_id == role_id)
    ).first()
    if link is None or not link.is_active:
        raise NotFound("Role assignment not found")
    link.is_active = False
    db.commit()


def assign_agent_role(db: Session, agent_id: int, role_id: int, assigned_by: int) -> AgentRole:
    _get_or_404(db, Agent, agent_id)
    role = _get_or_404(db, Role, role_id)
    if not role.is_active:
        raise BadRequest(f"Role {role.name!r} is inactive")

    link = db.scalars(select(AgentRole).where(AgentRole.agent_id == agent_id, AgentRole.role_id == role_id)).first()
    if link is None:
        link = AgentRole(agent_id=agent_id, role_id=role_id, assigned_by=assigned_by)
        db.add(link)
    elif link.is_active:
        raise Conflict(f"Role {role.name!r} already assigned")
    link.is_active = True
    link.assigned_by = assigned_by
    db.commit()
    logger.info("Agent role assigned agent_id=%s role_id=%s by=%s", agent_id, role_id, assigned_by)
    return link


def revoke_agent_role(db: Session, agent_id: int, role_id: int) -> None:
    link = db.scalars(select(AgentRole).where(AgentRole.agent_id == agent_id, AgentRole.role_id == role_id)).first()
    if link is None or not link.is_active:
        raise NotFound("Role assignment not found")
    link.is_active = False
    db.commit()


# ---- Tenants -------------------------------------------------------------------------


def set_region_active(db: Session, region_id: int, active: bool) -> Region:
    region = _get_or_404(db, Region, region_id)
    region.is_active = active
    db.commit()
    logger.info("Region active=%s region_id=%s", active, region_id)
    return region


def grant_region_access(db: Session, account_id: int, region_id: int, granted_by: int) -> AccountRegionAccess:
    _get_or_404(db, Account, account_id)
    require_active_region(db, region_id)

    grant = db.scalars(
        select(AccountRegionAccess).where(
            AccountRegionAccess.account_id == account_id, AccountRegionAccess.region_id == region_id
        )
    ).first()
    if grant is None:
        grant = AccountRegionAccess(account_id=account_id, region_id=region_id)
        db.add(grant)
    grant.is_active = True
    grant.granted_by = granted_by
    db.commit()
    logger.info("Region access granted account_id=%s region_id=%s by=%s", account_id, region_id, granted_by)
    return grant


def revoke_region_access(db: Session, account_id: int, region_id: int) -> None:
    grant = db.scalars(
        select(AccountRegionAccess).where(
            AccountRegionAccess.account_id == account_id, AccountRegionAccess.region_id == region_id
        )
    ).first()
    if grant is None or not grant.is_active:
        raise NotFound("Region access grant not found")
    grant.is_active = False
    db.commit()


def grant_sub_region_access(
    db: Session, account_id: int, sub_region_id: int, granted_by: int
) -> AccountSubRegionAccess:
    _get_or_404(db, Account, account_id)
    require_active_sub_region(db, sub_region_id)

    grant = db.scalars(
        select(AccountSubRegionAccess).where(
            AccountSubRegionAccess.account_id == account_id, AccountSubRegionAccess.sub_region_id == sub_region_id
        )
    ).first()
    if grant is None:
        grant = AccountSubRegionAccess(account_id=account_id, sub_region_id=sub_region_id)
        db.add(grant)
    grant.is_active = True
    grant.granted_by = granted_by
    db.commit()
    logger.info("Sub-region access granted account_id=%s sub_region_id=%s by=%s", account_id, sub_region_id, granted_by)
    return grant


def revoke_sub_region_access(db: Session, account_id: int, sub_region_id: int) -> None:
    grant = db.scalars(
        select(AccountSubRegionAccess).where(
            AccountSubRegionAccess.account_id == account_id, AccountSubRegionAccess.sub_region_id == sub_region_id
        )
    ).first()
    if grant is None or not grant.is_active:
        raise NotFound("Sub-region access grant not found")
    grant.is_active = False
    db.commit()


# ---- Roles and permissions -----------------------------------------------------------


def list_permissions(db: Session) -> list[Permission]:
    return list(db.scalars(select(Permission).order_by(Permission.resource, Permission.action)).all())


def create_permission(db: Session, resource: str, action: str, description: str | None = None) -> Permission:
    name = format_permission(resource, action)
    resource, action = name.split(":", 1)
    existing = db.scalars(
        select(Permission).where(Permission.resource == resource, Permission.action == action)
    ).first()
    if existing is not None:
        raise Conflict(f"Permission {name!r} already exists")

    permission = Permission(resource=resource, action=action, description=description or name, is_active=True)
    db.add(permission)
    db.commit()
    return permission


def delete_permission(db: Session, permission_id: int) -> Permission:
    """
    Retire a permission.

    Rows are never removed. A permission still actively linked to a role cannot be
    retired; unlink it first. Otherwise it is deactivated.
    """

    permission = _get_or_404(db, Permission, permission_id)
    usage = db.scalar(
        select(func.count())
        .select_from(RolePermission)
        .where(RolePermission.permission_id == permission_id, RolePermission.is_active.is_(True))
    )
    if usage:
        raise BadRequest(
            f"Permission {permission.resource}:{permission.action} is assigned to {usage} role(s); remove it from those roles first"
        )

    permission.is_active = False
    db.commit()
    logger.info("Permission deactivated permission_id=%s", permission_id)
    return permission


def set_permission_active(db: Session, permission_id: int, active: bool) -> Permission:
    permission = _get_or_404(db, Permission, permission_id)
    permission.is_active = active
    db.commit()
    return permission


def assign_permission_to_role(db: Session, role_id: int, permission_id: int, granted_by: int) -> RolePermission:
    _get_or_404(db, Role, role_id)
    permission = _get_or_404(db, Permission, permission_id)
    if not permission.is_active:
        raise BadRequest(f"Permission {permission.resource}:{permission.action} is inactive")

    link = db.scalars(
        select(RolePermission).where(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
    ).first()
    if link is None:
        link = RolePermission(role_id=role_id, permission_id=permission_id)
        db.add(link)
    elif link.is_active:
        raise Conflict(f"Permission {permission.resource}:{permission.action} already assigned to role")
    link.is_active = True
    link.granted_by = granted_by
    db.commit()
    return link


def remove_permission_from_role(db: Session, role_id: int, permission_id: int) -> None:
    link = db.scalars(
        select(RolePermission).where(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
    ).first()
    if link is None or not link.is_active:
        raise NotFound("Role permission link not found")
    link.is_active = False
    db.commit()
