"""
Tests for turning a bearer token into a CallerContext.
"""
from __future__ import annotations

import pytest
from fastapi import HTTPException

from civigest.models.security import AccessLevel
from civigest.security.auth import validate_credential
from civigest.security.credentials import (
    CredentialConfig,
    build_agent_claims,
    issue_agent_credential,
    issue_credential,
    sign_claims,
)
from civigest.security.errors import InactiveTenant, InvalidCredential, UnknownOrInactiveAccount
from tests.factories import grant_region, make_account, make_agent

SUPER = "Super Administrador"


@pytest.fixture
def credential_config(settings) -> CredentialConfig:
    return CredentialConfig.from_settings(settings)


def _token(account, config, roles=("Lector",), permissions=("departments:read",), region_grants=()):
    return issue_credential(account, list(roles), frozenset(permissions), region_grants, (), config).access_token


def test_valid_token_yields_caller(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com", access_level=AccessLevel.REGION)
    token = _token(account, credential_config)

    caller = validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)

    assert caller.account_id == account.id
    assert caller.roles == {"Lector"}
    assert caller.permissions == {"departments:read"}
    assert caller.access_level is AccessLevel.REGION
    assert caller.unrestricted is False


def test_unrestricted_role_sets_capability(db_session, world, credential_config):
    account = make_account(db_session, world, email="root@example.com", access_level=AccessLevel.GLOBAL)
    token = _token(account, credential_config, roles=(SUPER,))

    caller = validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)

    assert caller.unrestricted is True


def test_bad_token_raises_invalid_credential(db_session, world, credential_config):
    with pytest.raises(InvalidCredential) as exc_info:
        validate_credential(db_session, "abc.def.ghi", credential_config, unrestricted_role=SUPER)
    assert exc_info.value.status_code == 401


def test_deactivated_account_is_rejected(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com")
    token = _token(account, credential_config)
    account.is_active = False
    db_session.commit()

    with pytest.raises(UnknownOrInactiveAccount):
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)


def test_deleted_account_is_rejected(db_session, world, credential_config):
    from civigest.db.base import utcnow

    account = make_account(db_session, world, email="a@example.com")
    token = _token(account, credential_config)
    account.deleted_at = utcnow()
    db_session.commit()

    with pytest.raises(UnknownOrInactiveAccount):
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)


def test_deactivated_region_is_rejected(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com")
    token = _token(account, credential_config)
    world.regions[5].is_active = False
    db_session.commit()

    with pytest.raises(InactiveTenant) as exc_info:
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)
    assert exc_info.value.status_code == 401


def test_inactive_account_is_checked_before_region(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com")
    token = _token(account, credential_config)
    account.is_active = False
    world.regions[5].is_active = False
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)
    assert isinstance(exc_info.value, UnknownOrInactiveAccount)


def test_grants_are_refreshed_from_storage(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com", access_level=AccessLevel.REGION)
    token = _token(account, credential_config)
    grant_region(db_session, account, 7)

    refreshed = validate_credential(db_session, token, credential_config, unrestricted_role=SUPER)
    snapshot = validate_credential(
        db_session, token, credential_config, unrestricted_role=SUPER, refresh_grants=False
    )

    assert refreshed.granted_region_ids == {7}
    assert snapshot.granted_region_ids == frozenset()


def test_snapshot_grants_drop_inactive_regions(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com", access_level=AccessLevel.REGION)
    token = _token(account, credential_config, region_grants=(7,))

    world.regions[7].is_active = False
    db_session.commit()

    caller = validate_credential(
        db_session, token, credential_config, unrestricted_role=SUPER, refresh_grants=False
    )

    assert caller.granted_region_ids == frozenset()


# ---- Agents ---------------------------------------------------------------------------


@pytest.fixture
def agent_config(settings) -> CredentialConfig:
    return CredentialConfig.for_agents(settings)


def _agent_token(agent, config, roles=("Agente",), permissions=("departments:read", "patrols:read")):
    return issue_agent_credential(agent, list(roles), frozenset(permissions), config).access_token


def test_agent_token_yields_agent_caller(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001", sub_region_id=52)

    caller = validate_credential(
        db_session, _agent_token(agent, agent_config), credential_config, unrestricted_role=SUPER, agent_config=agent_config
    )

    assert caller.is_agent is True
    assert (caller.account_id, caller.username) == (agent.id, "PLT-001")
    assert caller.access_level is AccessLevel.SUB_REGION
    assert caller.sub_region_id == 52
    assert caller.permissions == {"departments:read", "patrols:read"}


def test_agent_token_needs_agent_config(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001")

    with pytest.raises(InvalidCredential):
        validate_credential(db_session, _agent_token(agent, agent_config), credential_config, unrestricted_role=SUPER)


def test_agent_claims_signed_with_account_secret_are_rejected(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001")
    forged = sign_claims(build_agent_claims(agent, ["Agente"], ["departments:read"]), credential_config).access_token

    with pytest.raises(InvalidCredential):
        validate_credential(db_session, forged, credential_config, unrestricted_role=SUPER, agent_config=agent_config)


def test_agent_never_gets_unrestricted_capability(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001")
    token = _agent_token(agent, agent_config, roles=(SUPER,))

    caller = validate_credential(db_session, token, credential_config, unrestricted_role=SUPER, agent_config=agent_config)

    assert caller.unrestricted is False


def test_deactivated_agent_is_rejected(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001")
    token = _agent_token(agent, agent_config)
    agent.is_active = False
    db_session.commit()

    with pytest.raises(UnknownOrInactiveAccount):
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER, agent_config=agent_config)


def test_agent_under_deactivated_region_is_rejected(db_session, world, credential_config, agent_config):
    agent = make_agent(db_session, world, badge_number="PLT-001", region_id=7, sub_region_id=71)
    token = _agent_token(agent, agent_config)
    world.regions[7].is_active = False
    db_session.commit()

    with pytest.raises(InactiveTenant):
        validate_credential(db_session, token, credential_config, unrestricted_role=SUPER, agent_config=agent_config)


def test_account_token_still_validates_with_agent_config(db_session, world, credential_config, agent_config):
    account = make_account(db_session, world, email="a@example.com")

    caller = validate_credential(
        db_session, _token(account, credential_config), credential_config, unrestricted_role=SUPER, agent_config=agent_config
    )

    assert caller.is_agent is False
