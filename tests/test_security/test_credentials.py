"""
Tests for credential issuance and decoding (HS256 JWT).
"""
from __future__ import annotations

import time

import jwt
import pytest

from civigest.models.security import AccessLevel
from civigest.security.credentials import (
    CredentialClaims,
    CredentialConfig,
    CredentialError,
    PRINCIPAL_AGENT,
    decode_credential,
    issue_agent_credential,
    issue_credential,
    peek_principal,
)
from tests.factories import make_account, make_agent


@pytest.fixture
def credential_config(settings) -> CredentialConfig:
    return CredentialConfig.from_settings(settings)


def _sign(payload: dict, config: CredentialConfig, secret: str | None = None) -> str:
    return jwt.encode(payload, secret or config.secret, algorithm=config.algorithm)


def _payload(config: CredentialConfig, **overrides) -> dict:
    now = int(time.time())
    payload = {
        "sub": "1",
        "email": "a@example.com",
        "username": "a",
        "region_id": 5,
        "sub_region_id": 51,
        "access_level": "SUB_REGION",
        "roles": ["Lector"],
        "permissions": ["departments:read"],
        "region_access_ids": [],
        "sub_region_access_ids": [],
        "iss": config.issuer,
        "iat": now,
        "exp": now + 60,
    }
    payload.update(overrides)
    return payload


def test_issued_credential_carries_snapshot(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com", access_level=AccessLevel.REGION, sub_region_id=None)

    issued = issue_credential(
        account,
        ["Lector"],
        frozenset({"departments:read"}),
        (7,),
        (),
        credential_config,
    )
    claims = decode_credential(issued.access_token, credential_config)

    assert issued.token_type == "Bearer"
    assert issued.expires_in == credential_config.ttl_seconds
    assert claims.account_id == account.id
    assert claims.email == "a@example.com"
    assert claims.region_id == 5
    assert claims.sub_region_id is None
    assert claims.access_level is AccessLevel.REGION
    assert claims.roles == ("Lector",)
    assert claims.permissions == ("departments:read",)
    assert claims.region_access_ids == (7,)
    assert claims.sub_region_access_ids == ()


def test_subject_is_a_string_in_the_payload(db_session, world, credential_config):
    account = make_account(db_session, world, email="a@example.com")

    issued = issue_credential(account, [], frozenset(), (), (), credential_config)
    payload = jwt.decode(issued.access_token, options={"verify_signature": False})

    assert payload["sub"] == str(account.id)
    assert payload["exp"] - payload["iat"] == credential_config.ttl_seconds


def test_wrong_signature_is_rejected(credential_config):
    token = _sign(_payload(credential_config), credential_config, secret="another-secret-that-is-long-enough-xx")

    with pytest.raises(CredentialError):
        decode_credential(token, credential_config)


def test_tampered_token_is_rejected(credential_config):
    token = _sign(_payload(credential_config), credential_config)
    header, body, signature = token.split(".")
    tampered = ".".join([header, body, signature[:-4] + ("AAAA" if not signature.endswith("AAAA") else "BBBB")])

    with pytest.raises(CredentialError):
        decode_credential(tampered, credential_config)


def test_expired_token_is_rejected(credential_config):
    past = int(time.time()) - 3600
    token = _sign(_payload(credential_config, iat=past - 60, exp=past), credential_config)

    with pytest.raises(CredentialError, match="expired"):
        decode_credential(token, credential_config)


def test_expiry_within_clock_skew_is_accepted(credential_config):
    now = int(time.time())
    token = _sign(_payload(credential_config, iat=now - 120, exp=now - 5), credential_config)

    assert decode_credential(token, credential_config).account_id == 1


def test_wrong_issuer_is_rejected(credential_config):
    token = _sign(_payload(credential_config, iss="someone-else"), credential_config)

    with pytest.raises(CredentialError):
        decode_credential(token, credential_config)


def test_missing_expiry_is_rejected(credential_config):
    payload = _payload(credential_config)
    payload.pop("exp")

    with pytest.raises(CredentialError):
        decode_credential(_sign(payload, credential_config), credential_config)


@pytest.mark.parametrize(
    "overrides",
    [
        {"access_level": "PLANET"},
        {"region_id": "north"},
        {"roles": "Lector"},
        {"principal": "robot"},
    ],
)
def test_malformed_claims_are_rejected(credential_config, overrides):
    token = _sign(_payload(credential_config, **overrides), credential_config)

    with pytest.raises(CredentialError, match="malformed"):
        decode_credential(token, credential_config)


def test_garbage_is_rejected(credential_config):
    with pytest.raises(CredentialError):
        decode_credential("not-a-jwt", credential_config)


def test_claims_payload_keys():
    claims = CredentialClaims(
        account_id=3,
        email="x@example.com",
        username="x",
        region_id=5,
        sub_region_id=None,
        access_level=AccessLevel.GLOBAL,
        roles=("Super Administrador",),
        permissions=(),
        region_access_ids=(),
        sub_region_access_ids=(),
    )

    assert claims.to_payload() == {
        "sub": "3",
        "email": "x@example.com",
        "username": "x",
        "region_id": 5,
        "sub_region_id": None,
        "access_level": "GLOBAL",
        "roles": ["Super Administrador"],
        "permissions": [],
        "region_access_ids": [],
        "sub_region_access_ids": [],
        "principal": "account",
    }


def test_agent_credential_is_signed_with_the_agent_secret(db_session, world, settings):
    agent = make_agent(db_session, world, badge_number="PLT-001", roles=("Agente",))
    agent_config = CredentialConfig.for_agents(settings)

    issued = issue_agent_credential(agent, ["Agente"], frozenset({"departments:read"}), agent_config)

    assert issued.expires_in == settings.agent_token_ttl_seconds
    assert peek_principal(issued.access_token) == PRINCIPAL_AGENT
    claims = decode_credential(issued.access_token, agent_config)
    assert (claims.account_id, claims.username, claims.sub_region_id) == (agent.id, "PLT-001", 51)
    assert claims.access_level is AccessLevel.SUB_REGION
    assert claims.region_access_ids == () and claims.sub_region_access_ids == ()
    with pytest.raises(CredentialError):
        decode_credential(issued.access_token, CredentialConfig.from_settings(settings))


def test_peek_principal_defaults_to_account(credential_config):
    assert peek_principal(_sign(_payload(credential_config), credential_config)) == "account"
    with pytest.raises(CredentialError):
        peek_principal("not-a-jwt")
