from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from civigest.db.filters import bind_scope
from civigest.db.session import get_db
from civigest.security.auth import extract_bearer_token, validate_credential
from civigest.security.config import SecurityConfig
from civigest.security.context import CallerContext
from civigest.security.credentials import CredentialConfig
from civigest.security.errors import InvalidCredential
from civigest.security.guard import authorize, authorize_roles, require_unrestricted
from civigest.security.scope import QueryConstraint, scope_filter
from civigest.settings import Settings

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise RuntimeError("Settings not loaded. Did app startup run?")
    return settings


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_credential_config(settings: Settings = Depends(get_app_settings)) -> CredentialConfig:
    return CredentialConfig.from_settings(settings)


def get_caller(request: Request) -> CallerContext:
    caller = getattr(request.state, "caller", None)
    if caller is None:
        raise InvalidCredential("Authentication required")
    return caller


def get_scope(request: Request) -> QueryConstraint:
    scope = getattr(request.state, "scope", None)
    if scope is None:
        raise InvalidCredential("Authentication required")
    return scope


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency.

    Runs after routing so it can combine the YAML route rule with decorator
    metadata on the endpoint. On success it leaves two things on
    `request.state`:
    - `caller`: the validated CallerContext
    - `scope`: the QueryConstraint every tenant-scoped query is filtered by
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    if endpoint is not None and getattr(endpoint, "__security_public__", False):
        return

    decorator_perms = set(getattr(endpoint, "__security_required_permissions__", set())) if endpoint else set()
    decorator_roles = set(getattr(endpoint, "__security_required_roles__", set())) if endpoint else set()
    decorator_unrestricted = bool(getattr(endpoint, "__security_unrestricted_only__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_perms) or bool(decorator_roles) or decorator_unrestricted
    if not auth_required:
        return

    token = extract_bearer_token(request, config)
    if token is None:
        raise InvalidCredential("Authentication required")

    caller = validate_credential(
        db,
        token,
        CredentialConfig.from_settings(settings),
        unrestricted_role=settings.unrestricted_role,
        refresh_grants=settings.refresh_scope_grants,
        agent_config=CredentialConfig.for_agents(settings),
    )
    request.state.caller = caller

    if rule.unrestricted_only or decorator_unrestricted:
        require_unrestricted(caller)
    authorize_roles(caller, set(rule.required_roles) | decorator_roles)
    authorize(caller, set(rule.required_permissions) | decorator_perms)

    scope = scope_filter(caller)
    request.state.scope = scope
    bind_scope(db, scope)
    logger.debug("Allowed account_id=%s path=%s method=%s scope=%r", caller.account_id, path, method, scope)
