from __future__ import annotations

from collections.abc import Callable

from civigest.security.permissions import parse_permission


def require_permissions(*permissions: str, unrestricted: bool = False) -> Callable:
    """
    Declare the `resource:action` permissions an endpoint needs (all of them).

    `unrestricted=True` additionally limits the endpoint to callers with the
    unrestricted capability (same as stacking `@require_unrestricted()`).

    Implementation detail:
    - This decorator does NOT perform the check itself.
    - It attaches metadata that the global security dependency reads after
      routing (during dependency resolution).
    """

    pairs = {parse_permission(p) for p in permissions}

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_permissions__", set()))
        setattr(fn, "__security_required_permissions__", existing | pairs)
        if unrestricted:
            setattr(fn, "__security_unrestricted_only__", True)
        return fn

    return decorator


def require_roles(roles: list[str]) -> Callable:
    """Declare role names of which the caller must hold at least one."""

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_roles__", set()))
        setattr(fn, "__security_required_roles__", existing | set(roles))
        return fn

    return decorator


def require_unrestricted() -> Callable:
    """Only callers with the unrestricted capability may reach the endpoint."""

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_unrestricted_only__", True)
        return fn

    return decorator


def public() -> Callable:
    """Skip authentication entirely (login, register, health)."""

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_public__", True)
        return fn

    return decorator
