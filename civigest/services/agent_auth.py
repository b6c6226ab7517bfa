"""
Badge-number login for agents.

Agents authenticate separately from accounts: they log in with a badge
number, their credential is signed with `agent_jwt_secret` and expires after
`agent_token_ttl_seconds`, and it always scopes them to their own sub-region.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from civigest.db.base import utcnow
from civigest.models.agents import Agent
from civigest.security.auth import load_live_agent
from civigest.security.context import CallerContext
from civigest.security.credentials import CredentialConfig, IssuedCredential, issue_agent_credential
from civigest.security.errors import BadRequest, InvalidCredential, UnknownOrInactiveAccount
from civigest.security.passwords import dummy_password_hash, hash_password, verify_password
from civigest.security.permissions import load_agent_role_assignments, resolve_permissions, resolve_role_names
from civigest.settings import Settings

logger = logging.getLogger(__name__)

_GENERIC_LOGIN_FAILURE = "Invalid credentials"


@dataclass(frozen=True)
class AgentAuthResult:
    credential: IssuedCredential
    agent: Agent
    roles: list[str]
    permissions: list[str]


def _issue_for(db: Session, agent: Agent, settings: Settings) -> AgentAuthResult:
    assignments = load_agent_role_assignments(db, agent.id)
    roles = resolve_role_names(assignments)
    permissions = resolve_permissions(assignments)

    credential = issue_agent_credential(agent, roles, permissions, CredentialConfig.for_agents(settings))
    return AgentAuthResult(credential=credential, agent=agent, roles=roles, permissions=sorted(permissions))


def login_agent(db: Session, badge_number: str, password: str, settings: Settings) -> AgentAuthResult:
    """
    Authenticate by badge number + password.

    Every failure (unknown badge, wrong password, inactive agent, inactive
    sub-region or region) is the same InvalidCredential.
    """

    agent = db.scalars(
        select(Agent).where(Agent.badge_number == badge_number).execution_options(skip_tenant_scope=True)
    ).first()

    stored_hash = agent.password_hash if agent is not None else dummy_password_hash(settings.bcrypt_rounds)
    if not verify_password(password, stored_hash) or agent is None:
        logger.info("Agent login failed (bad badge number or password)")
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    if not agent.is_live:
        logger.info("Agent login failed (inactive agent) agent_id=%s", agent.id)
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    sub_region = agent.sub_region
    if sub_region is None or not sub_region.is_live:
        logger.info("Agent login failed (inactive sub-region) agent_id=%s sub_region_id=%s", agent.id, agent.sub_region_id)
        raise InvalidCredential(_GENERIC_LOGIN_FAILURE)

    agent.last_login_at = utcnow()
    db.commit()

    logger.info("Agent login succeeded agent_id=%s", agent.id)
    return _issue_for(db, agent, settings)


def _live_agent_for(db: Session, caller: CallerContext) -> Agent:
    try:
        return load_live_agent(db, caller.account_id, caller.username)
    except UnknownOrInactiveAccount:
        raise InvalidCredential() from None


def agent_profile(db: Session, caller: CallerContext) -> Agent:
    return _live_agent_for(db, caller)


def change_agent_password(
    db: Session, caller: CallerContext, current_password: str, new_password: str, settings: Settings
) -> Agent:
    agent = _live_agent_for(db, caller)

    if not verify_password(current_password, agent.password_hash):
        logger.info("Agent password change rejected (wrong current password) agent_id=%s", agent.id)
        raise BadRequest("Current password is incorrect")
    if new_password == current_password:
        raise BadRequest("New password must differ from the current one")

    agent.password_hash = hash_password(new_password, rounds=settings.bcrypt_rounds)
    agent.must_change_password = False
    db.commit()
    logger.info("Agent password changed agent_id=%s", agent.id)
    return agent


def reissue_agent(db: Session, caller: CallerContext, settings: Settings) -> AgentAuthResult:
    return _issue_for(db, _live_agent_for(db, caller), settings)
