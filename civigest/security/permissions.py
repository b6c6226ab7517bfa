"""
Role -> permission resolution.

Permissions are stored as `(resource, action)` rows and travel as
`"resource:action"` strings. Only active links contribute:

    AccountRole.is_active
      -> Role.is_active
        -> RolePermission.is_active
          -> Permission.is_active

An account with no active path to any permission resolves to the empty set,
which makes every permission check fail.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from civigest.models.agents import AgentRole
from civigest.models.security import AccountRole, Role, RolePermission

logger = logging.getLogger(__name__)

PERMISSION_SEPARATOR = ":"


def format_permission(resource: str, action: str) -> str:
    resource = resource.strip().lower()
    action = action.strip().lower()
    if not resource or not action:
        raise ValueError("permission resource and action must be non-empty")
    return f"{resource}{PERMISSION_SEPARATOR}{action}"


def parse_permission(value: str) -> tuple[str, str]:
    resource, sep, action = value.partition(PERMISSION_SEPARATOR)
    if not sep:
        raise ValueError(f"permission {value!r} must look like 'resource:action'")
    resource, action = format_permission(resource, action).split(PERMISSION_SEPARATOR, 1)
    return resource, action


def _active_roles(assignments: Iterable[AccountRole | AgentRole]) -> list[Role]:
    return [a.role for a in assignments if a.is_active and a.role is not None and a.role.is_active]


def resolve_role_names(assignments: Iterable[AccountRole | AgentRole]) -> list[str]:
    """Names of the active roles, sorted and without duplicates."""
    return sorted({role.name for role in _active_roles(assignments)})


def resolve_permissions(assignments: Iterable[AccountRole | AgentRole]) -> frozenset[str]:
    perms: set[str] = set()
    for role in _active_roles(assignments):
        for link in role.permission_links:
            if not link.is_active or not link.permission.is_active:
                continue
            perms.add(format_permission(link.permission.resource, link.permission.action))
    return frozenset(perms)


@dataclass(frozen=True)
class Capabilities:
    """Flags derived from role names. Nothing else compares role names."""

    unrestricted: bool


def resolve_capabilities(role_names: Iterable[str], unrestricted_role: str) -> Capabilities:
    return Capabilities(unrestricted=unrestricted_role in set(role_names))


def load_role_assignments(db: Session, account_id: int) -> list[AccountRole]:
    """Load the account's active role assignments with roles and permissions eagerly."""

    stmt = (
        select(AccountRole)
        .where(AccountRole.account_id == account_id, AccountRole.is_active.is_(True))
        .options(
            selectinload(AccountRole.role)
            .selectinload(Role.permission_links)
            .selectinload(RolePermission.permission)
        )
        .order_by(AccountRole.id)
    )
    assignments = list(db.scalars(stmt).all())
    logger.debug("Loaded %d active role assignment(s) account_id=%s", len(assignments), account_id)
    return assignments


def load_agent_role_assignments(db: Session, agent_id: int) -> list[AgentRole]:
    stmt = (
        select(AgentRole)
        .where(AgentRole.agent_id == agent_id, AgentRole.is_active.is_(True))
        .options(
            selectinload(AgentRole.role)
            .selectinload(Role.permission_links)
            .selectinload(RolePermission.permission)
        )
        .order_by(AgentRole.id)
    )
    return list(db.scalars(stmt).all())
