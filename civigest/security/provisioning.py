"""
Keep the permission table in step with the permissions the code declares.

Route rules (YAML) and endpoint decorators name `resource:action` pairs. A
pair that has no `Permission` row would make its route unreachable for
everyone, so at startup every missing pair is created and linked to the
administrator roles (`Settings.permission_admin_roles`).

Rows that already exist are left alone, including ones an administrator has
deactivated, and existing permissions are never linked to additional roles.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.models.security import Permission, Role, RolePermission
from civigest.security.config import SecurityConfig
from civigest.security.permissions import format_permission, parse_permission

logger = logging.getLogger(__name__)


def declared_permissions(config: SecurityConfig, routes: Iterable) -> set[tuple[str, str]]:
    """Every `(resource, action)` named by the route rules or an endpoint decorator."""

    pairs = {parse_permission(p) for p in config.model.default.required_permissions}
    for rule in config.model.routes:
        pairs.update(parse_permission(p) for p in rule.required_permissions)

    for route in routes:
        endpoint = getattr(route, "endpoint", None)
        pairs.update(getattr(endpoint, "__security_required_permissions__", set()))
    return pairs


def provision_permissions(db: Session, pairs: Iterable[tuple[str, str]], admin_roles: Iterable[str]) -> list[Permission]:
    """
    Create the missing permissions and link each one to the active admin roles.

    Returns the permissions that were created.
    """

    existing = {(p.resource, p.action) for p in db.scalars(select(Permission)).all()}
    missing = sorted(set(pairs) - existing)
    if not missing:
        return []

    role_names = list(admin_roles)
    roles = db.scalars(select(Role).where(Role.name.in_(role_names), Role.is_active.is_(True)).order_by(Role.id)).all()
    if not roles:
        logger.warning("No active admin role among %s; new permissions are not linked to any role", role_names)

    created: list[Permission] = []
    for resource, action in missing:
        name = format_permission(resource, action)
        permission = Permission(resource=resource, action=action, description=name, is_active=True)
        db.add(permission)
        db.flush()
        for role in roles:
            db.add(RolePermission(role_id=role.id, permission_id=permission.id))
        created.append(permission)
        logger.info("Provisioned permission %s for roles %s", name, [r.name for r in roles])

    db.commit()
    return created
