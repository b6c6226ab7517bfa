from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.models.agents import Agent
from civigest.models.security import AccessLevel, Account
from civigest.models.tenancy import Region, SubRegion
from civigest.security.config import SecurityConfig
from civigest.security.context import CallerContext
from civigest.security.credentials import (
    PRINCIPAL_AGENT,
    CredentialClaims,
    CredentialConfig,
    CredentialError,
    decode_credential,
    peek_principal,
)
from civigest.security.errors import InactiveTenant, InvalidCredential, UnknownOrInactiveAccount
from civigest.security.permissions import resolve_capabilities
from civigest.security.scope import collect_scope_grants, live_scope_grants

logger = logging.getLogger(__name__)


def extract_bearer_token(request: Request, config: SecurityConfig) -> str | None:
    """
    Read `Authorization: Bearer <token>`.

    Returns None when the header is absent; raises InvalidCredential when it is
    present but unusable.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise InvalidCredential(f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise InvalidCredential(f"Invalid {header_name}. Missing token after '{bearer_prefix}'.")

    return token


def load_live_account(db: Session, account_id: int, email: str) -> Account:
    account = db.execute(
        select(Account).where(
            Account.id == account_id,
            Account.email == email,
            Account.is_active.is_(True),
            Account.deleted_at.is_(None),
        )
    ).scalar_one_or_none()

    if account is None:
        raise UnknownOrInactiveAccount()
    return account


def require_live_region(db: Session, region_id: int) -> Region:
    region = db.get(Region, region_id)
    if region is None or not region.is_live:
        raise InactiveTenant()
    return region


def load_live_agent(db: Session, agent_id: int, badge_number: str) -> Agent:
    agent = db.execute(
        select(Agent)
        .where(
            Agent.id == agent_id,
            Agent.badge_number == badge_number,
            Agent.is_active.is_(True),
            Agent.deleted_at.is_(None),
        )
        .execution_options(skip_tenant_scope=True)
    ).scalar_one_or_none()

    if agent is None:
        raise UnknownOrInactiveAccount()
    return agent


def require_live_sub_region(db: Session, sub_region_id: int | None) -> SubRegion:
    sub_region = db.get(SubRegion, sub_region_id) if sub_region_id is not None else None
    if sub_region is None or not sub_region.is_live:
        raise InactiveTenant("The agent's sub-region is inactive")
    return sub_region


def _decode(raw_token: str, config: CredentialConfig, agent_config: CredentialConfig | None) -> CredentialClaims:
    # The principal claim only picks the key; each key verifies one principal.
    try:
        if peek_principal(raw_token) == PRINCIPAL_AGENT:
            if agent_config is None:
                raise CredentialError("Invalid token: agent credentials are not accepted")
            claims = decode_credential(raw_token, agent_config)
            if claims.principal != PRINCIPAL_AGENT:
                raise CredentialError("Invalid token: principal")
            return claims

        claims = decode_credential(raw_token, config)
        if claims.principal == PRINCIPAL_AGENT:
            raise CredentialError("Invalid token: principal")
        return claims
    except CredentialError as exc:
        raise InvalidCredential(str(exc)) from exc


def _agent_caller(db: Session, claims: CredentialClaims) -> CallerContext:
    try:
        agent = load_live_agent(db, claims.account_id, claims.username)
    except UnknownOrInactiveAccount:
        logger.info("Rejected credential for unknown or inactive agent agent_id=%s", claims.account_id)
        raise

    try:
        require_live_sub_region(db, agent.sub_region_id)
    except InactiveTenant:
        logger.info("Rejected credential, inactive sub-region agent_id=%s sub_region_id=%s", agent.id, agent.sub_region_id)
        raise

    # Scope follows the live record so a reassigned agent leaves its old sub-region at once.
    return CallerContext(
        account_id=agent.id,
        email=claims.email,
        username=claims.username,
        region_id=agent.region_id,
        sub_region_id=agent.sub_region_id,
        access_level=AccessLevel.SUB_REGION,
        roles=frozenset(claims.roles),
        permissions=frozenset(claims.permissions),
        granted_region_ids=frozenset(),
        granted_sub_region_ids=frozenset(),
        unrestricted=False,
        is_agent=True,
    )


def validate_credential(
    db: Session,
    raw_token: str,
    config: CredentialConfig,
    *,
    unrestricted_role: str,
    refresh_grants: bool = True,
    agent_config: CredentialConfig | None = None,
) -> CallerContext:
    """
    Turn a raw bearer token into a CallerContext.

    Order matters:
    1. signature / expiry / shape            -> InvalidCredential
    2. account still exists and is active    -> UnknownOrInactiveAccount
    3. the account's home region is active   -> InactiveTenant

    Roles and permissions come from the token. Explicit grants are re-read from
    storage when `refresh_grants` is set, otherwise taken from the token too.
    Either way a grant whose region or sub-region is no longer live is dropped.

    With `agent_config` the same call also accepts agent credentials. Agents
    go through the same three steps against the agent table and their
    sub-region, and never get the unrestricted capability.
    """

    claims = _decode(raw_token, config, agent_config)
    if claims.principal == PRINCIPAL_AGENT:
        return _agent_caller(db, claims)

    try:
        account = load_live_account(db, claims.account_id, claims.email)
    except UnknownOrInactiveAccount:
        logger.info("Rejected credential for unknown or inactive account account_id=%s", claims.account_id)
        raise

    try:
        require_live_region(db, account.region_id)
    except InactiveTenant:
        logger.info("Rejected credential, inactive region account_id=%s region_id=%s", account.id, account.region_id)
        raise

    if refresh_grants:
        grants = collect_scope_grants(db, account.id)
    else:
        grants = live_scope_grants(db, claims.region_access_ids, claims.sub_region_access_ids)
    region_ids, sub_region_ids = grants.region_ids, grants.sub_region_ids

    capabilities = resolve_capabilities(claims.roles, unrestricted_role)

    return CallerContext(
        account_id=claims.account_id,
        email=claims.email,
        username=claims.username,
        region_id=claims.region_id,
        sub_region_id=claims.sub_region_id,
        access_level=claims.access_level,
        roles=frozenset(claims.roles),
        permissions=frozenset(claims.permissions),
        granted_region_ids=frozenset(region_ids),
        granted_sub_region_ids=frozenset(sub_region_ids),
        unrestricted=capabilities.unrestricted,
    )
