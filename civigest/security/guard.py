from __future__ import annotations

import logging
from collections.abc import Iterable

from civigest.security.context import CallerContext
from civigest.security.errors import Forbidden
from civigest.security.permissions import format_permission

logger = logging.getLogger(__name__)


def authorize(caller: CallerContext, required: Iterable[tuple[str, str]]) -> None:
    """
    Require every `(resource, action)` pair in `required`.

    An empty requirement means "authenticated is enough". Raises Forbidden
    naming the first missing permission.
    """

    for resource, action in sorted(set(required)):
        permission = format_permission(resource, action)
        if not caller.has_permission(permission):
            logger.info("Denied account_id=%s missing=%s", caller.account_id, permission)
            raise Forbidden(f"Missing permission: {permission}")


def authorize_roles(caller: CallerContext, required_roles: Iterable[str]) -> None:
    """Require at least one of `required_roles` (empty -> allowed)."""

    required = set(required_roles)
    if required and not (caller.roles & required):
        logger.info("Denied account_id=%s roles=%s required_one_of=%s", caller.account_id, sorted(caller.roles), sorted(required))
        raise Forbidden(f"Insufficient role. Required one of: {sorted(required)}")


def require_unrestricted(caller: CallerContext) -> None:
    if not caller.unrestricted:
        logger.info("Denied account_id=%s (unrestricted capability required)", caller.account_id)
        raise Forbidden("Only unrestricted administrators can perform this action")


def require_agent(caller: CallerContext) -> None:
    if not caller.is_agent:
        logger.info("Denied account_id=%s (agent credential required)", caller.account_id)
        raise Forbidden("Only agents can perform this action")
